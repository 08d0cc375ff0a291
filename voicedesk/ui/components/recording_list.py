"""
Saved recordings list with a single expandable player.
"""

import logging

import streamlit as st

from voicedesk.core.exceptions import VoiceDeskError
from voicedesk.core.models import PersistedRecording, ProcessingStatus
from voicedesk.core.utils import format_megabytes, format_time
from voicedesk.ui.components.audio_player import render_audio_player
from voicedesk.ui.runtime import AppServices
from voicedesk.ui.utils import open_folder_in_explorer

logger = logging.getLogger(__name__)

_STATUS_OPTIONS = [("All", None)] + [(s.value.title(), s) for s in ProcessingStatus]


def render_recording_list(services: AppServices) -> None:
    """Render filters, the recordings and the expanded player."""
    library = services.library

    col_query, col_status, col_refresh = st.columns([3, 2, 1])
    with col_query:
        query = st.text_input("Search", placeholder="Title or transcript")
    with col_status:
        labels = [label for label, _ in _STATUS_OPTIONS]
        idx = st.selectbox("Status", range(len(labels)), format_func=lambda i: labels[i])
        status = _STATUS_OPTIONS[idx][1]
    with col_refresh:
        st.write("")
        refresh = st.button("Refresh", use_container_width=True)

    changed = (query or None) != library.filter.query or status != library.filter.status
    if refresh or changed or not st.session_state.get("_library_loaded"):
        try:
            services.runner.run(library.refresh(status=status, query=query))
            st.session_state._library_loaded = True
        except VoiceDeskError:
            pass  # surfaced through library.error

    if library.error:
        st.error(library.error)

    if not library.records:
        st.info("No recordings yet. Record something above to get started.")
        return

    st.caption(f"{library.total} recording(s)")
    for record in library.records:
        _render_record(services, record)


def _render_record(services: AppServices, record: PersistedRecording) -> None:
    library = services.library
    expanded = library.expanded_id == record.id

    with st.container(border=True):
        col_info, col_play, col_dl, col_del = st.columns([5, 1, 1, 1])
        with col_info:
            st.markdown(f"**{record.title}**")
            parts = [
                format_time(record.duration),
                format_megabytes(record.file_size),
                record.created_at.strftime("%Y-%m-%d %H:%M") if record.created_at else None,
            ]
            st.caption(" | ".join(p for p in parts if p))
            if record.description:
                st.write(record.description)
        with col_play:
            if st.button("Hide" if expanded else "Play", key=f"play_{record.id}"):
                services.runner.call(library.select_for_playback, record.id)
                st.rerun()
        with col_dl:
            if st.button("Download", key=f"dl_{record.id}"):
                try:
                    path = services.runner.run(library.download(record.id))
                    st.toast(f"Saved to {path}")
                except VoiceDeskError as exc:
                    st.error(exc.detail)
        with col_del:
            deleting = library.is_deleting(record.id)
            if st.button("Delete", key=f"del_{record.id}", disabled=deleting):
                try:
                    services.runner.run(library.delete(record.id))
                except VoiceDeskError:
                    pass  # surfaced through library.error
                st.rerun()

        if expanded and library.player is not None:
            render_audio_player(library.player, services.runner, key=f"player_{record.id}")


def render_downloads_shortcut(services: AppServices) -> None:
    if st.button("Open Downloads Folder", use_container_width=True):
        open_folder_in_explorer(services.settings.downloads_dir)
