"""Ape Escape (Streamlit)

Tap-to-climb idle game host.

Principles:
- UI only renders + triggers.
- Game rules live in core/ (pure), the tap flow and timers in engine/.
- Remote profile sync is optional. Without Supabase credentials the game
  plays from the local snapshot only.

Entry point for Streamlit Cloud: app.py
"""

from __future__ import annotations

import os
from dataclasses import asdict
from datetime import datetime, timezone
from typing import Dict, Optional

import streamlit as st

from core.meter import meter_zone, slip_chance_band, stage_progress_pct, taps_to_next_stage
from core.platforms import DEFAULT_PLATFORMS
from core.referral import is_gang_leader
from core.rules import INSURANCE_COST, RESET_RUG_METER_COST
from core.session import active_minutes
from core.shares import cooldowns
from core.state import state_to_dict

from engine.config import EngineConfig
from engine.logging import configure_logging, dumps_session_export
from engine.runtime import GameRuntime, now_ms

from storage.local import LocalSnapshotStore
from storage.parsing import try_parse_snapshot
from storage.providers.base import ProviderStatus
from storage.providers.supabase import SupabaseProfileStore

APP_TITLE = "Ape Escape"
APP_SUBTITLE = "Tap to climb. Every tap pushes the rug meter. Slip and you fall back a little."
APP_VERSION = "1.0.0"

st.set_page_config(page_title=APP_TITLE, page_icon="🦍", layout="centered", initial_sidebar_state="expanded")

CSS = """
<style>
.block-container {padding-top: 2.4rem; padding-bottom: 2rem;}
.pill {
  display: inline-block;
  padding: 2px 10px;
  border-radius: 999px;
  border: 1px solid rgba(255,255,255,0.12);
  font-size: 12px;
  opacity: .85;
}
.pill.green, .pill.safe {border-color: rgba(120,255,160,0.35);}
.pill.yellow, .pill.warning {border-color: rgba(255,190,90,0.45);}
.pill.red, .pill.danger {border-color: rgba(255,120,120,0.45);}
hr.soft {border: none; border-top: 1px solid rgba(255,255,255,0.08); margin: 1rem 0;}
.small {font-size: 13px; opacity:.75;}
</style>
"""

st.markdown(CSS, unsafe_allow_html=True)

CORE_API_VERSION = "core-ape-v1"


def bootstrap_core_or_stop() -> None:
    """Stop with a helpful message if the deployed core does not match this app."""
    import core

    api_ver = getattr(core, "API_VERSION", None)
    if api_ver != CORE_API_VERSION:
        st.error(
            "Core version does not match the app (partial deploy?).\n\n"
            f"Expected core: {CORE_API_VERSION}, found: {api_ver!r}"
        )
        st.stop()


bootstrap_core_or_stop()

NOTICE_ICONS = {"anti-cheat": "🚫", "slip": "🍌", "stage-up": "🎉", "info": "💬"}


# =========================
# Helpers
# =========================


def _secret(name: str) -> str:
    # Streamlit Cloud: st.secrets
    try:
        if name in st.secrets:
            return str(st.secrets[name])  # type: ignore
    except FileNotFoundError:
        pass
    return ""


def _config() -> EngineConfig:
    env: Dict[str, str] = dict(os.environ)
    for key in ("SUPABASE_URL", "SUPABASE_ANON_KEY", "APE_ESCAPE_SEED"):
        val = _secret(key)
        if val:
            env[key] = val
    return EngineConfig.from_env(env)


def _build_runtime(cfg: EngineConfig) -> GameRuntime:
    store = SupabaseProfileStore.from_config(cfg) if cfg.remote_enabled else None
    return GameRuntime(cfg, local_store=LocalSnapshotStore(cfg.snapshot_path), profile_store=store)


def _provider_status(runtime: GameRuntime) -> ProviderStatus:
    if runtime.profile_store is None:
        return ProviderStatus(False, "none", note="local only", error="SUPABASE_URL / SUPABASE_ANON_KEY missing")
    return runtime.profile_store.status()


def _fmt_ms(ms: int) -> str:
    minutes, seconds = divmod(max(0, int(ms)) // 1000, 60)
    hours, minutes = divmod(minutes, 60)
    return f"{hours}h {minutes:02d}m" if hours else f"{minutes}m {seconds:02d}s"


# =========================
# Session State
# =========================


def _ensure_state() -> None:
    ss = st.session_state
    if "engine_config" not in ss:
        ss.engine_config = _config()
        configure_logging(ss.engine_config.log_level)
    if "runtime" not in ss:
        ss.runtime = _build_runtime(ss.engine_config)
    if "last_outcome" not in ss:
        ss.last_outcome = None


def _reset_run() -> None:
    ss = st.session_state
    runtime: Optional[GameRuntime] = ss.get("runtime")
    if runtime is not None:
        runtime.close()
        runtime.local_store.clear()
    for k in list(ss.keys()):
        del ss[k]
    _ensure_state()


# =========================
# UI Pages
# =========================


def _render_notices(runtime: GameRuntime) -> None:
    for n in runtime.notices():
        icon = NOTICE_ICONS.get(n.kind, "💬")
        if n.kind == "anti-cheat":
            st.warning(f"{icon} {n.text}")
        elif n.kind == "slip":
            st.error(f"{icon} {n.text}")
        elif n.kind == "stage-up":
            st.success(f"{icon} {n.text}")
        else:
            st.info(f"{icon} {n.text}")


def page_play() -> None:
    ss = st.session_state
    runtime: GameRuntime = ss.runtime
    runtime.advance()
    state = runtime.state

    st.title(APP_TITLE)
    st.caption(APP_SUBTITLE)

    a, b, c, d = st.columns(4)
    a.metric("Stage", state.current_stage)
    b.metric("APE", f"{state.ape_balance:,}")
    c.metric("Total taps", f"{state.total_taps:,}")
    d.metric("Slips", state.rug_count)

    st.progress(stage_progress_pct(state) / 100.0, text=f"{taps_to_next_stage(state)} taps to Stage {state.current_stage + 1}")

    zone = meter_zone(state.rug_meter_progress)
    band = slip_chance_band(state.slip_chance)
    st.markdown(
        f"<span class='pill {zone}'>Rug meter: {state.rug_meter_progress:.0f}%</span> "
        f"<span class='pill {band}'>Slip chance: {state.slip_chance * 100:.0f}%</span> "
        + (f"<span class='pill green'>🛡️ Insured: {state.insurance_taps_left} taps</span> " if state.insurance_active else "")
        + ("<span class='pill red'>🔥 REVENGE x2</span>" if state.revenge_mode_active else ""),
        unsafe_allow_html=True,
    )

    st.markdown("<hr class='soft'/>", unsafe_allow_html=True)

    if st.button("🦍 TAP", key="tap", use_container_width=True, type="primary"):
        ss.last_outcome = runtime.tap()
        st.rerun()

    _render_notices(runtime)

    st.markdown("<hr class='soft'/>", unsafe_allow_html=True)

    # --- Spend ---
    st.markdown("### 💰 Spend APE")
    c1, c2 = st.columns(2)
    with c1:
        if st.button(f"Insurance ({INSURANCE_COST} APE)", use_container_width=True, disabled=state.insurance_active):
            runtime.buy_insurance()
            st.rerun()
    with c2:
        if st.button(f"Reset rug meter ({RESET_RUG_METER_COST} APE)", use_container_width=True):
            runtime.reset_rug_meter()
            st.rerun()

    # --- Session ---
    st.markdown("### ⏰ Session")
    s1, s2, s3 = st.columns(3)
    s1.metric("Active", _fmt_ms(state.session_active_time))
    s2.metric("Session taps", state.session_taps)
    s3.metric("Session slips", state.session_slips)
    if active_minutes(state.session_active_time) >= 30:
        st.caption("You have been playing for a while. A short break helps. 💚")
    r1, r2 = st.columns(2)
    with r1:
        if st.button("Reset session time", use_container_width=True):
            runtime.reset_session_time()
            st.rerun()
    with r2:
        if st.button("New session", use_container_width=True):
            runtime.reset_session()
            st.rerun()


def page_social() -> None:
    ss = st.session_state
    runtime: GameRuntime = ss.runtime
    runtime.advance()
    state = runtime.state

    st.title("Social")
    _render_notices(runtime)

    # --- Account ---
    st.markdown("### 👤 Account")
    if runtime.profile_store is None:
        st.info("Remote profiles are disabled. Set SUPABASE_URL and SUPABASE_ANON_KEY to sync across devices.")
    elif runtime.user_id is None:
        uid = st.text_input("Player id")
        if st.button("Sign in", disabled=not uid.strip()):
            runtime.sign_in(uid.strip())
            st.rerun()
    else:
        profile = runtime.profile
        st.markdown(f"Signed in as **{(profile.username if profile else None) or runtime.user_id}**")
        if profile is not None:
            if profile.referral_code:
                st.markdown(f"Your referral code: `{profile.referral_code}`")
            label = "👑 Gang Leader" if is_gang_leader(profile.total_referrals) else "Referrals"
            st.metric(label, profile.total_referrals)
        if st.button("Sign out"):
            runtime.sign_out()
            st.rerun()

    st.markdown("<hr class='soft'/>", unsafe_allow_html=True)

    # --- Referral ---
    st.markdown("### 🤝 Use a referral code")
    code = st.text_input("Referral code", placeholder="APEXXXXX")
    if st.button("Apply code", disabled=not code.strip()):
        runtime.apply_referral_code(code)
        st.rerun()

    st.markdown("<hr class='soft'/>", unsafe_allow_html=True)

    # --- Shares ---
    st.markdown("### 📣 Share rewards")
    st.caption(f"Shares today: {state.daily_shares}")
    keys = list(DEFAULT_PLATFORMS.keys())
    platform = st.selectbox("Platform", keys, format_func=lambda k: f"{DEFAULT_PLATFORMS[k].name} (+{DEFAULT_PLATFORMS[k].reward} APE)")
    share_type = st.radio("What did you share?", ["manual", "milestone", "slip"], horizontal=True)
    url = st.text_input("Post URL")
    if st.button("Verify share", disabled=not url.strip()):
        runtime.complete_share(platform, url, share_type)
        st.rerun()
    waits = {k: v for k, v in cooldowns(state, now_ms()).items() if v > 0}
    for k, ms in waits.items():
        st.markdown(f"<div class='small'>{DEFAULT_PLATFORMS[k].name}: cooldown {_fmt_ms(ms)}</div>", unsafe_allow_html=True)


def page_debug() -> None:
    ss = st.session_state
    runtime: GameRuntime = ss.runtime
    st.title("Debug")

    st.subheader("Provider")
    st.json(asdict(_provider_status(runtime)))

    st.subheader("EngineConfig")
    cfg = asdict(ss.engine_config)
    cfg.pop("supabase_key", None)
    st.json(cfg)

    st.subheader("GameState")
    st.json(state_to_dict(runtime.state))

    st.subheader("Last outcome")
    out = ss.get("last_outcome")
    st.json({"kind": out.kind, "log": out.log} if out is not None else {})

    st.subheader("Recent events")
    st.json(list(runtime.events)[-20:])


def export_import_controls() -> None:
    ss = st.session_state
    runtime: GameRuntime = ss.runtime
    st.sidebar.markdown("---")
    st.sidebar.markdown("### Session Export / Import")

    payload = runtime.export()
    payload["meta"] = {
        "app": APP_TITLE,
        "version": APP_VERSION,
        "exported_at": datetime.now(timezone.utc).isoformat(),
    }
    st.sidebar.download_button(
        "Download session",
        data=dumps_session_export(payload).encode("utf-8"),
        file_name=f"ape_escape_{runtime.state.session_start_time}.json",
        mime="application/json",
    )

    up = st.sidebar.file_uploader("Load session", type=["json"], accept_multiple_files=False)
    if up is not None and ss.get("imported_file") != up.name:
        ss.imported_file = up.name
        res = try_parse_snapshot(up.read().decode("utf-8"))
        if res.data is None:
            st.sidebar.error(f"Import failed: {res.error}")
            return
        runtime.restore(res.data)
        st.sidebar.success("Session loaded.")


# =========================
# Sidebar
# =========================


def sidebar() -> str:
    ss = st.session_state
    runtime: GameRuntime = ss.runtime

    st.sidebar.markdown(f"**{APP_TITLE}**  ")
    st.sidebar.markdown(f"v{APP_VERSION}")

    st.sidebar.markdown("---")

    ps = _provider_status(runtime)
    if ps.ok:
        st.sidebar.success(f"Profile sync ready ({ps.backend})")
    else:
        st.sidebar.warning("Playing offline")
        st.sidebar.caption(ps.error or ps.note)

    online = st.sidebar.toggle("Online", value=runtime.online)
    if online != runtime.online:
        runtime.set_online(online)

    if st.sidebar.button("Daily login", use_container_width=True):
        runtime.daily_login()
        st.rerun()
    if st.sidebar.button("Reset", use_container_width=True):
        _reset_run()
        st.rerun()

    export_import_controls()

    st.sidebar.markdown("---")
    return st.sidebar.radio("Page", ["Play", "Social", "Debug"], index=0)


# =========================
# Main
# =========================


def main() -> None:
    _ensure_state()
    page = sidebar()

    if page == "Play":
        page_play()
    elif page == "Social":
        page_social()
    else:
        page_debug()


if __name__ == "__main__":
    main()
