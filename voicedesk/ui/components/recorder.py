"""
Recorder component: drives a VoiceCaptureSession.

States: idle -> requesting -> recording -> stopped -> (saving) -> idle
"""

import logging

import streamlit as st

from voicedesk.core.models import CaptureState
from voicedesk.core.utils import format_megabytes, format_time
from voicedesk.ui.components.audio_player import render_audio_player
from voicedesk.ui.runtime import AppServices

logger = logging.getLogger(__name__)


def render_recorder(services: AppServices) -> None:
    """Render the recorder UI for the session's capture state."""
    session = services.capture

    if session.error:
        st.error(session.error)

    if session.state in (CaptureState.idle, CaptureState.requesting):
        _render_idle(services)
    elif session.state == CaptureState.recording:
        _render_recording(services)
    else:
        _render_pending(services)


def _render_idle(services: AppServices) -> None:
    session = services.capture
    label = "Try again" if session.error else "Start Recording"
    if st.button(label, type="primary", disabled=session.state != CaptureState.idle):
        try:
            services.runner.run(session.start())
        except Exception:
            pass  # logged and surfaced through session.error
        st.rerun()


def _render_recording(services: AppServices) -> None:
    session = services.capture

    @st.fragment(run_every=services.settings.capture_tick_seconds)
    def _elapsed() -> None:
        st.markdown(f"**Recording** {format_time(session.elapsed)}")

    _elapsed()
    if st.button("Stop Recording", type="primary"):
        services.runner.run(session.stop())
        st.rerun()


def _render_pending(services: AppServices) -> None:
    session = services.capture
    clip = session.clip
    if clip is None:
        return

    st.markdown(
        f"**Recording ready**: {format_time(clip.duration_seconds)}, "
        f"{format_megabytes(clip.size)}"
    )

    preview = st.session_state.get("_preview_player")
    if preview is None or preview.state.source_url != clip.handle:
        if preview is not None:
            services.runner.call(preview.close)
        preview = services.new_player()
        services.runner.call(preview.bind, clip.handle, "Preview")
        st.session_state._preview_player = preview
    render_audio_player(preview, services.runner, key="preview")

    saving = session.state == CaptureState.saving
    title = st.text_input("Title", placeholder=session.default_title(), disabled=saving)
    description = st.text_area("Description (optional)", disabled=saving)

    col_save, col_discard = st.columns(2)
    with col_save:
        if st.button(
            "Saving..." if saving else "Save Recording",
            type="primary",
            disabled=saving or services.identity is None,
            use_container_width=True,
        ):
            try:
                record = services.runner.run(session.save(title, description or None))
            except Exception:
                pass  # logged and surfaced through session.error
            else:
                _close_preview(services)
                st.toast(f"Saved \"{record.title}\"")
            st.rerun()
    with col_discard:
        if st.button("Discard", disabled=saving, use_container_width=True):
            _close_preview(services)
            services.runner.call(session.discard)
            st.rerun()

    if services.identity is None:
        st.info("Sign in to save recordings.")


def _close_preview(services: AppServices) -> None:
    preview = st.session_state.pop("_preview_player", None)
    if preview is not None:
        services.runner.call(preview.close)
