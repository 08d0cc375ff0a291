"""
Voice page: record a clip, save it and browse saved recordings.
"""

import streamlit as st

from voicedesk.ui.components.recorder import render_recorder
from voicedesk.ui.components.recording_list import render_recording_list
from voicedesk.ui.runtime import get_services

services = get_services()

st.header("Voice Recorder")
render_recorder(services)

st.divider()
st.header("Your Recordings")
if services.identity is None:
    st.info("Sign in to see your saved recordings.")
else:
    render_recording_list(services)
