"""
Streamlit entry point for the Campaign Intelligence Vault.

Provides the intelligence dashboard on top of `ProbeOrchestrator`: campaign
profile form, research probes, the snapshot vault, and the threat matrix with
rival extraction. State is restored from the local store on first load and
mirrored back to it on every change.
"""

from __future__ import annotations

import logging
import os
from pathlib import Path

import streamlit as st
from dotenv import load_dotenv

from agents import InferenceGateway, ProbeOrchestrator
from agents.probe_prompts import PRIORITY_GROUPS, TOPIC_LABELS
from campaign_state_manager import (
    CampaignStore,
    active_snapshot,
    default_profile,
    demo_profile,
    load_profile,
    missing_profile_fields,
    update_profile,
)
from domain.persistence import JsonFileStore, PersistenceBridge
from domain.rivals import opponent_from_form

# Ensure environment variables from .env are loaded before instantiating the gateway.
load_dotenv()

LOGGER = logging.getLogger(__name__)


@st.cache_resource(show_spinner=False)
def _get_gateway() -> InferenceGateway:
    """Create a singleton InferenceGateway per Streamlit process."""
    return InferenceGateway()


def _init_session_state() -> None:
    """Initialize keys stored in st.session_state."""
    if "orchestrator" not in st.session_state:
        store_dir = Path(os.getenv("CAMPAIGN_STORE_DIR", ".campaign_vault"))
        log_dir = os.getenv("CAMPAIGN_LOG_DIR")
        bridge = PersistenceBridge(JsonFileStore(store_dir))
        st.session_state.orchestrator = ProbeOrchestrator(
            CampaignStore.restored(bridge),
            _get_gateway(),
            log_dir=Path(log_dir) if log_dir else None,
        )


def _orchestrator() -> ProbeOrchestrator:
    return st.session_state.orchestrator


def _render_sidebar() -> None:
    """Render the campaign profile form and session controls."""
    orchestrator = _orchestrator()
    profile = orchestrator.store.state.profile
    with st.sidebar:
        st.header("Campaign Profile")
        with st.form("profile_form"):
            candidate = st.text_input("Candidate name", value=profile.candidate_name)
            office = st.text_input("Office sought", value=profile.office_sought)
            district = st.text_input("District ID", value=profile.district_id)
            party = st.selectbox("Party", ["D", "R", "I"], index=["D", "R", "I"].index(profile.party) if profile.party in {"D", "R", "I"} else 2)
            research = st.text_area("Voter research notes", value=profile.voter_research or "")
            if st.form_submit_button("Save profile", use_container_width=True):
                orchestrator.store.dispatch(
                    update_profile,
                    candidate_name=candidate.strip(),
                    office_sought=office.strip(),
                    district_id=district.strip(),
                    party=party,
                    voter_research=research.strip() or None,
                )
                st.rerun()

        missing = missing_profile_fields(profile)
        if missing:
            st.caption("Missing: " + ", ".join(missing))

        col_demo, col_reset = st.columns(2)
        if col_demo.button("Load demo", use_container_width=True):
            orchestrator.store.dispatch(load_profile, demo_profile())
            st.rerun()
        if col_reset.button("New campaign", use_container_width=True):
            orchestrator.store.dispatch(load_profile, default_profile())
            st.rerun()

        st.divider()
        if orchestrator.store.is_syncing:
            st.caption("Syncing...")
        elif orchestrator.store.last_save_ok is False:
            st.caption("Local save failed; changes are kept in memory only.")

        with st.expander("Activity log", expanded=False):
            entries = orchestrator.activity_log.entries
            if entries:
                for entry in reversed(entries[-50:]):
                    st.markdown(f"`{entry.timestamp}` **{entry.channel}**: {entry.message}")
            else:
                st.caption("No activity recorded yet.")


def _render_probes() -> None:
    orchestrator = _orchestrator()
    state = orchestrator.store.state
    scanned = {snapshot.topic for snapshot in state.vault if not snapshot.failed}
    busy = orchestrator.is_busy("probe")

    st.subheader("Intelligence Operations")
    for group, topics in PRIORITY_GROUPS.items():
        st.caption(group.title())
        columns = st.columns(len(topics))
        for column, topic in zip(columns, topics):
            label = TOPIC_LABELS[topic] + (" ✓" if topic.value in scanned else "")
            if column.button(label, key=f"probe_{topic.value}", disabled=busy, use_container_width=True):
                with st.spinner(f"Running {topic.value} probe..."):
                    orchestrator.run_probe_sync(topic)
                st.rerun()


def _render_vault() -> None:
    orchestrator = _orchestrator()
    state = orchestrator.store.state
    st.subheader(f"Research Vault ({len(state.vault)} reports)")
    if not state.vault:
        st.caption("No research yet. Run a probe above.")
        return

    ids = [snapshot.id for snapshot in state.vault]
    labels = {
        snapshot.id: f"{snapshot.topic} · {snapshot.created_at}" + (" · failed" if snapshot.failed else "")
        for snapshot in state.vault
    }
    current = state.active_snapshot_id if state.active_snapshot_id in ids else ids[0]
    selected = st.selectbox("Snapshot", ids, index=ids.index(current), format_func=labels.get)
    if selected != state.active_snapshot_id:
        orchestrator.select_snapshot(selected)
        st.rerun()

    snapshot = active_snapshot(orchestrator.store.state)
    if snapshot is None:
        return
    if snapshot.failed:
        st.error(snapshot.error_detail or snapshot.raw_text)
    elif snapshot.parsed_summary:
        signal, threat, action = st.columns(3)
        signal.markdown(f"**Signal**\n\n{snapshot.parsed_summary.signal}")
        threat.markdown(f"**Threat**\n\n{snapshot.parsed_summary.threat}")
        action.markdown(f"**Action**\n\n{snapshot.parsed_summary.action}")
        st.caption(f"Signal strength: {snapshot.signal_strength}%")
    with st.expander("Raw brief", expanded=False):
        st.markdown(snapshot.raw_text)
    st.download_button(
        "Download brief",
        data=orchestrator.export_snapshot_text(snapshot.id) or "",
        file_name=f"{snapshot.topic.lower()}_{snapshot.id}.txt",
        mime="text/plain",
    )


def _render_threat_matrix() -> None:
    orchestrator = _orchestrator()
    state = orchestrator.store.state
    st.subheader(f"Threat Matrix ({len(state.profile.opponents)} targets)")

    notice = st.session_state.pop("extraction_notice", None)
    if notice:
        st.success(notice)

    has_source = active_snapshot(state) is not None
    busy = orchestrator.is_busy("extract_rivals")
    col_review, col_auto = st.columns(2)
    if col_review.button("Extract rivals for review", disabled=not has_source or busy, use_container_width=True):
        with st.spinner("Parsing research vault for competitive threats..."):
            result = orchestrator.extract_rivals_sync()
        if result.ok:
            st.session_state.extraction_notice = result.message
            st.rerun()
        st.warning(result.message)
    if col_auto.button("Extract and register all", disabled=not has_source or busy, use_container_width=True):
        with st.spinner("Parsing research vault for competitive threats..."):
            result = orchestrator.extract_rivals_sync(auto_merge=True)
        if result.ok:
            st.session_state.extraction_notice = result.message
            st.rerun()
        st.warning(result.message)

    if state.pending_rivals:
        st.markdown("**Review extracted rivals**")
        for idx, rival in enumerate(state.pending_rivals):
            role = "Incumbent" if rival.incumbent else "Challenger"
            left, right = st.columns([4, 1])
            left.markdown(f"**{rival.name}** · {rival.party or '?'} · {role}")
            if right.button("Register", key=f"pending_{idx}"):
                orchestrator.register_pending_rival(rival.name)
                st.rerun()
        if st.button("Dismiss remaining"):
            orchestrator.dismiss_pending_rivals()
            st.rerun()

    if state.profile.opponents:
        for idx, opponent in enumerate(state.profile.opponents):
            role = "Incumbent" if opponent.incumbent else "Challenger"
            with st.expander(f"{opponent.name} ({opponent.party or '?'}, {role})"):
                st.markdown("**Strengths:** " + (", ".join(opponent.strengths) or "none recorded"))
                st.markdown("**Weaknesses:** " + (", ".join(opponent.weaknesses) or "none recorded"))
                if st.button("Remove", key=f"remove_{idx}"):
                    orchestrator.remove_opponent(opponent.name)
                    st.rerun()
    else:
        st.caption("No rival agents identified in this sector.")

    with st.form("register_rival", clear_on_submit=True):
        st.markdown("**Register new rival**")
        name = st.text_input("Name")
        party = st.text_input("Party")
        incumbent = st.checkbox("Incumbent")
        strengths = st.text_input("Strengths (comma separated)")
        weaknesses = st.text_input("Weaknesses (comma separated)")
        if st.form_submit_button("Register target"):
            try:
                orchestrator.register_opponent(opponent_from_form(name, party, incumbent, strengths, weaknesses))
            except ValueError as exc:
                st.warning(str(exc))
            else:
                st.rerun()


def main() -> None:
    st.set_page_config(
        page_title="Campaign Intelligence Vault",
        layout="wide",
    )

    st.title("Intelligence Command Center")
    st.caption("Multi-modal district intelligence and opposition research.")

    try:
        _init_session_state()
    except Exception as exc:  # pragma: no cover - surfaced to UI
        LOGGER.exception("Streamlit failed to initialize ProbeOrchestrator: %s", exc)
        st.error(f"Failed to initialize the intelligence vault.\n\nDetails: {exc}")
        return

    config_error = _orchestrator().gateway.credential_error()
    if config_error:
        st.warning(config_error)

    _render_sidebar()
    _render_probes()
    st.divider()
    _render_vault()
    st.divider()
    _render_threat_matrix()


if __name__ == "__main__":
    main()
