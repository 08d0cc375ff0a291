"""
VoiceDesk Streamlit UI: main entry point.

Run with: ``streamlit run voicedesk/ui/app.py``
"""

import logging

import streamlit as st

from voicedesk.core.config import get_settings
from voicedesk.core.exceptions import VoiceDeskError
from voicedesk.ui.components.recording_list import render_downloads_shortcut
from voicedesk.ui.runtime import get_services

_settings = get_settings()
logging.basicConfig(
    level=_settings.log_level.upper(),
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)

# ---------------------------------------------------------------------------
# Page config (must be first Streamlit call)
# ---------------------------------------------------------------------------
st.set_page_config(
    page_title="VoiceDesk",
    page_icon="\U0001f399️",
    layout="wide",
)

services = get_services()

# ---------------------------------------------------------------------------
# Sidebar
# ---------------------------------------------------------------------------
with st.sidebar:
    st.title("\U0001f399️ VoiceDesk")
    st.caption("Record, store and replay voice notes")
    st.divider()

    identity = services.identity
    if identity is None:
        with st.form("sign_in"):
            email = st.text_input("Email")
            password = st.text_input("Password", type="password")
            submitted = st.form_submit_button("Sign in", use_container_width=True)
        if submitted:
            try:
                services.runner.run(services.gateways.identity.sign_in(email, password))
                st.session_state.pop("_library_loaded", None)
                st.rerun()
            except VoiceDeskError as exc:
                st.error(exc.detail)

        with st.expander("Create an account"):
            with st.form("sign_up"):
                full_name = st.text_input("Full name")
                new_email = st.text_input("Email", key="sign_up_email")
                new_password = st.text_input("Password", type="password", key="sign_up_password")
                confirm = st.text_input("Confirm password", type="password")
                created = st.form_submit_button("Sign up", use_container_width=True)
            if created:
                if new_password != confirm:
                    st.error("Passwords do not match")
                else:
                    try:
                        new_identity = services.runner.run(
                            services.gateways.identity.sign_up(
                                new_email, new_password, full_name or None
                            )
                        )
                    except VoiceDeskError as exc:
                        st.error(exc.detail)
                    else:
                        if new_identity is None:
                            st.info("Check your email to confirm your account.")
                        else:
                            st.session_state.pop("_library_loaded", None)
                            st.rerun()

        with st.expander("Forgot password?"):
            with st.form("password_reset"):
                reset_email = st.text_input("Email", key="reset_email")
                requested = st.form_submit_button("Send reset link", use_container_width=True)
            if requested:
                try:
                    services.runner.run(
                        services.gateways.identity.send_password_reset(reset_email)
                    )
                    st.info("If that email is registered, a reset link is on its way.")
                except VoiceDeskError as exc:
                    st.error(exc.detail)
    else:
        st.success(f"Signed in as {identity.email or identity.id}")
        if st.button("Sign out", use_container_width=True):
            services.runner.run(services.gateways.identity.sign_out())
            st.session_state.pop("_preview_player", None)
            st.rerun()

    st.divider()
    render_downloads_shortcut(services)

# ---------------------------------------------------------------------------
# Navigation (multipage)
# ---------------------------------------------------------------------------
voice_page = st.Page(
    "pages/01_voice.py",
    title="Voice",
    icon="\U0001f3a4",
    default=True,
)
profile_page = st.Page(
    "pages/02_profile.py",
    title="Profile",
    icon="\U0001f464",
)

nav = st.navigation([voice_page, profile_page])
nav.run()
