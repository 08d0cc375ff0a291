"""
Profile page: account details, notification preferences and avatar.
"""

import logging

import streamlit as st

from voicedesk.core.exceptions import VoiceDeskError
from voicedesk.ui.runtime import get_services

logger = logging.getLogger(__name__)

services = get_services()
identity = services.identity
profiles = services.gateways.profiles

st.header("Profile")

if identity is None:
    st.info("Sign in to manage your profile.")
    st.stop()

try:
    profile = services.runner.run(profiles.get(identity.id))
except VoiceDeskError as exc:
    st.error(f"Failed to load profile: {exc.detail}")
    st.stop()

col_avatar, col_form = st.columns([1, 3])

with col_avatar:
    if profile.avatar_url:
        st.image(profile.avatar_url, width=160)
        if st.button("Remove avatar"):
            try:
                services.runner.run(profiles.remove_avatar(profile))
                st.rerun()
            except VoiceDeskError as exc:
                st.error(exc.detail)
    avatar = st.file_uploader("Upload avatar", type=["png", "jpg", "jpeg", "gif", "webp"])
    if avatar is not None and st.button("Save avatar"):
        try:
            services.runner.run(
                profiles.upload_avatar(avatar.name, avatar.getvalue(), avatar.type or "")
            )
            st.toast("Avatar updated")
            st.rerun()
        except VoiceDeskError as exc:
            st.error(exc.detail)

with col_form:
    with st.form("profile"):
        st.text_input("Email", value=identity.email or "", disabled=True)
        full_name = st.text_input("Full name", value=profile.full_name or "")
        username = st.text_input("Username", value=profile.username or "")
        website = st.text_input("Website", value=profile.website or "")
        phone = st.text_input("Phone", value=profile.phone or "")
        location = st.text_input("Location", value=profile.location or "")
        bio = st.text_area("Bio", value=profile.bio or "")
        saved = st.form_submit_button("Save changes", type="primary")
    if saved:
        try:
            services.runner.run(
                profiles.update(
                    identity.id,
                    full_name=full_name or None,
                    username=username or None,
                    website=website or None,
                    phone=phone or None,
                    location=location or None,
                    bio=bio or None,
                )
            )
            st.toast("Profile updated")
        except VoiceDeskError as exc:
            st.error(exc.detail)

    st.subheader("Notifications")
    with st.form("notifications"):
        email_notifications = st.toggle("Email notifications", value=profile.email_notifications)
        sms_notifications = st.toggle("SMS notifications", value=profile.sms_notifications)
        marketing_emails = st.toggle("Marketing emails", value=profile.marketing_emails)
        login_alerts = st.toggle("Login alerts", value=profile.login_alerts)
        notify_saved = st.form_submit_button("Save preferences")
    if notify_saved:
        try:
            services.runner.run(
                profiles.update_notifications(
                    identity.id,
                    email_notifications=email_notifications,
                    sms_notifications=sms_notifications,
                    marketing_emails=marketing_emails,
                    login_alerts=login_alerts,
                )
            )
            st.toast("Preferences saved")
        except VoiceDeskError as exc:
            st.error(exc.detail)
