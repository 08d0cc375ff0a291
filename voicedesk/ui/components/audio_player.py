"""
Audio player component: transport controls, progress and the error panel.
"""

import streamlit as st

from voicedesk.core.exceptions import InvalidStateError
from voicedesk.core.models import PlaybackStatus
from voicedesk.core.utils import format_time
from voicedesk.services.audio.player import AudioPlayback
from voicedesk.ui.runtime import LoopRunner


def render_audio_player(player: AudioPlayback, runner: LoopRunner, key: str) -> None:
    """Render ``player`` and wire its buttons through ``runner``.

    Args:
        player: A bound AudioPlayback.
        runner: Loop runner owning the player's event loop.
        key: Widget key prefix, unique per player on the page.
    """

    @st.fragment(run_every=0.5)
    def _live() -> None:
        state = player.state
        if state.status == PlaybackStatus.error:
            _render_error(player, runner, key)
            return

        if state.title:
            st.markdown(f"**{state.title}**")

        if state.loading:
            st.caption("Loading audio...")
            return
        if state.status == PlaybackStatus.idle:
            return

        col_play, col_mute, col_time = st.columns([1, 1, 4])
        with col_play:
            label = "Pause" if state.playing else "Play"
            if st.button(label, key=f"{key}_play", use_container_width=True):
                try:
                    runner.run(player.toggle_play())
                except InvalidStateError:
                    pass
                st.rerun(scope="fragment")
        with col_mute:
            label = "Unmute" if state.muted else "Mute"
            if st.button(label, key=f"{key}_mute", use_container_width=True):
                runner.call(player.toggle_mute)
                st.rerun(scope="fragment")
        with col_time:
            st.caption(f"{format_time(state.elapsed)} / {format_time(state.duration)}")
            st.progress(state.progress)

        position = st.slider(
            "Seek",
            min_value=0,
            max_value=100,
            value=int(state.progress * 100),
            key=f"{key}_seek_{int(state.elapsed)}",
            label_visibility="collapsed",
        )
        if position != int(state.progress * 100):
            runner.call(player.seek, position / 100)

    _live()


def _render_error(player: AudioPlayback, runner: LoopRunner, key: str) -> None:
    error = player.state.error
    with st.container(border=True):
        st.error(error.message if error else "Failed to load audio")
        if error and error.detail:
            st.caption(error.detail)
        if player.state.source_url and st.button("Retry", key=f"{key}_retry"):
            runner.call(player.retry)
            st.rerun(scope="fragment")
