"""
Streamlit Frontend for Together Budget

A shared household ledger for two people: each person records their own
expenses in two currencies and can look at (but not change) their
partner's ledger.

DESIGN PRINCIPLES:
1. Simple, clear interface
2. Clear error messages in simple language
3. Visual feedback for all operations
4. The partner view is visibly read-only

The ledger view keeps a live subscription open, so all async work runs
on one background event loop that outlives Streamlit reruns.
"""

import asyncio
import threading
from datetime import date
from decimal import Decimal

import streamlit as st

from src.config import get_settings, validate_all_settings
from src.ledger import ValidationError
from src.models import (
    AggregationWindow,
    AmountField,
    ExpenseCategory,
    LedgerFilter,
    OperationStatus,
    SessionContext,
)
from src.orchestrator import ConnectionFlow, LedgerFlow, create_app_components
from src.services.storage import InMemoryProfileStore, InMemoryRecordStore


# Page configuration
st.set_page_config(
    page_title="Together Budget",
    page_icon="💰",
    layout="wide",
    initial_sidebar_state="expanded",
)

st.markdown("""
<style>
    .stButton>button {
        width: 100%;
        margin-top: 10px;
    }
    .readonly-box {
        padding: 12px 20px;
        background-color: #cce5ff;
        border-radius: 10px;
        border-left: 5px solid #004085;
        margin: 10px 0;
    }
    .big-number {
        font-size: 2em;
        font-weight: bold;
        color: #2c3e50;
    }
</style>
""", unsafe_allow_html=True)


@st.cache_resource
def get_event_loop() -> asyncio.AbstractEventLoop:
    """One event loop on a daemon thread, shared by every session."""
    loop = asyncio.new_event_loop()
    threading.Thread(target=loop.run_forever, daemon=True).start()
    return loop


def run_async(coro):
    """Run a coroutine on the background loop and wait for its result."""
    return asyncio.run_coroutine_threadsafe(coro, get_event_loop()).result()


@st.cache_resource
def get_shared_stores():
    """
    Stores shared across sessions when running on the in-memory backend.

    Returns (None, None) for other backends; create_app_components builds
    those from settings.
    """
    if get_settings().app.storage_backend == "memory":
        return InMemoryRecordStore(), InMemoryProfileStore()
    return None, None


def get_flows(user_id: str) -> tuple[LedgerFlow, ConnectionFlow]:
    """Per-session flows, rebuilt when the signed-in user changes."""
    cached = st.session_state.get("flows")
    if cached and cached[0].session.user_id == user_id:
        return cached

    if cached:
        release_flows()

    record_store, profile_store = get_shared_stores()
    ledger_flow, connection_flow = create_app_components(
        SessionContext(user_id=user_id),
        record_store=record_store,
        profile_store=profile_store,
    )
    run_async(connection_flow.fetch_connections())
    result = run_async(ledger_flow.show_own_ledger())
    if result.ok:
        run_async(ledger_flow.view.wait_until_synced())
    else:
        st.error(result.message)

    st.session_state.flows = (ledger_flow, connection_flow)
    st.session_state.partner_view = False
    return ledger_flow, connection_flow


def release_flows() -> None:
    """Close this session's ledger subscription and forget its flows."""
    cached = st.session_state.pop("flows", None)
    if cached:
        run_async(cached[0].close())
    st.session_state.pop("partner_view", None)


def sign_out() -> None:
    """on_click handler: end the session's subscription and clear the user id."""
    release_flows()
    st.session_state.user_id = ""


def show_result(result) -> None:
    if result.status == OperationStatus.SUCCESS:
        st.success(result.message)
    elif result.status == OperationStatus.CONFLICT:
        st.info(result.message)
    else:
        st.error(result.message)


def main():
    """Main application entry point."""
    st.sidebar.title("💰 Together Budget")
    st.sidebar.markdown("---")

    user_id = st.sidebar.text_input(
        "Your user ID",
        key="user_id",
        help="Stand-in for sign-in: the ID your partner uses to connect to you",
    ).strip()

    page = st.sidebar.radio(
        "Navigate to:",
        ["📊 Dashboard", "🤝 Connect", "⚙️ Settings"],
        index=0,
    )

    if page == "⚙️ Settings":
        render_settings_page()
        return

    if not user_id:
        release_flows()
        st.info("Enter your user ID in the sidebar to get started.")
        return

    st.sidebar.button("Sign out", on_click=sign_out)

    ledger_flow, connection_flow = get_flows(user_id)

    if page == "📊 Dashboard":
        render_dashboard(ledger_flow)
    elif page == "🤝 Connect":
        render_connect_page(connection_flow)


# =============================================================================
# DASHBOARD
# =============================================================================

def _recompute_from(field: AmountField, ledger_flow: LedgerFlow) -> None:
    """on_change handler: write the counterpart field only."""
    source_key = "amount_primary" if field == AmountField.PRIMARY else "amount_secondary"
    target_key = "amount_secondary" if field == AmountField.PRIMARY else "amount_primary"
    try:
        pair = ledger_flow.amount_entry.on_edit(field, st.session_state[source_key])
    except ValidationError as e:
        st.session_state.amount_error = str(e)
        return
    st.session_state.amount_error = None
    counterpart = pair.secondary if field == AmountField.PRIMARY else pair.primary
    st.session_state[target_key] = float(counterpart)


def render_entry_form(ledger_flow: LedgerFlow):
    converter = ledger_flow.converter
    st.subheader("➕ Add Expense")

    col1, col2 = st.columns(2)
    with col1:
        expense_date = st.date_input("Date", value=date.today(), key="entry_date")
        category = st.selectbox(
            "Category",
            options=list(ExpenseCategory),
            format_func=lambda c: c.value,
            key="entry_category",
        )
        description = st.text_input("Description (optional)", key="entry_description")
    with col2:
        st.number_input(
            f"Amount ({converter.primary_currency})",
            min_value=0.0,
            step=0.01,
            format="%.2f",
            key="amount_primary",
            on_change=_recompute_from,
            args=(AmountField.PRIMARY, ledger_flow),
        )
        st.number_input(
            f"Amount ({converter.secondary_currency})",
            min_value=0.0,
            step=0.01,
            format="%.2f",
            key="amount_secondary",
            on_change=_recompute_from,
            args=(AmountField.SECONDARY, ledger_flow),
        )
        if st.session_state.get("amount_error"):
            st.error(st.session_state.amount_error)

    if st.button("💾 Save Expense", type="primary"):
        result = run_async(ledger_flow.submit_entry(
            date=expense_date,
            category=category,
            description=description,
            amount_primary=Decimal(str(st.session_state.amount_primary)),
            amount_secondary=Decimal(str(st.session_state.amount_secondary)),
        ))
        show_result(result)
        if result.ok:
            st.rerun()


def render_filters(ledger_flow: LedgerFlow) -> LedgerFilter:
    default = LedgerFilter.current_month()
    col1, col2, col3 = st.columns([1, 1, 2])
    with col1:
        start = st.date_input("From", value=default.start, key="filter_start")
    with col2:
        end = st.date_input("To", value=default.end, key="filter_end")
    with col3:
        categories = st.multiselect(
            "Categories",
            options=list(ExpenseCategory),
            format_func=lambda c: c.value,
            help="Leave empty to show every category",
            key="filter_categories",
        )

    if end < start:
        st.warning("End date is before start date; showing the current month instead.")
        return default
    return LedgerFilter(start=start, end=end, categories=frozenset(categories))


def render_summary(ledger_flow: LedgerFlow, ledger_filter: LedgerFilter):
    converter = ledger_flow.converter
    st.subheader("📈 Monthly Summary")

    today = date.today()
    col1, col2, col3 = st.columns([1, 1, 2])
    with col1:
        month = st.selectbox("Month", options=list(range(1, 13)), index=today.month - 1)
    with col2:
        year = st.number_input("Year", min_value=2000, max_value=9999, value=today.year, step=1)
    with col3:
        only_filtered = st.checkbox("Only filtered expenses", value=False)

    window = AggregationWindow(month=month, year=int(year))
    summary = ledger_flow.monthly_summary(
        window,
        ledger_filter if only_filtered else None,
    )

    if not summary.has_data:
        st.info(f"No data for {window.label}.")
        return

    st.markdown(
        f'<div class="big-number">{converter.primary_currency} '
        f'{summary.total_primary:,.2f}</div>'
        f"{converter.secondary_currency} {summary.total_secondary:,.2f}",
        unsafe_allow_html=True,
    )
    rows = [
        {
            "Category": category.value,
            converter.primary_currency: f"{group.total_primary:,.2f}",
            converter.secondary_currency: f"{group.total_secondary:,.2f}",
            "Share": f"{summary.percentage_of(category)}%",
        }
        for category, group in summary.sorted_categories()
    ]
    st.table(rows)


def render_dashboard(ledger_flow: LedgerFlow):
    """Render the ledger dashboard."""
    st.title("📊 Dashboard")

    partner_view = st.toggle("Show partner's expenses", key="partner_view")
    if partner_view and ledger_flow.is_own_ledger:
        result = run_async(ledger_flow.show_partner_ledger())
        if not result.ok:
            show_result(result)
        else:
            run_async(ledger_flow.view.wait_until_synced())
    elif not partner_view and not ledger_flow.is_own_ledger:
        run_async(ledger_flow.show_own_ledger())
        run_async(ledger_flow.view.wait_until_synced())

    if ledger_flow.is_own_ledger:
        render_entry_form(ledger_flow)
    else:
        st.markdown(
            f'<div class="readonly-box">Viewing <strong>{ledger_flow.viewing_identity}</strong>'
            "'s expenses (read-only)</div>",
            unsafe_allow_html=True,
        )

    st.markdown("---")
    st.subheader("📋 Expenses")
    ledger_filter = render_filters(ledger_flow)
    visible = ledger_flow.visible_records(ledger_filter)
    converter = ledger_flow.converter

    if not visible:
        st.info("No expenses match the current filters.")
    for record in visible:
        cols = st.columns([2, 2, 4, 2, 2, 1])
        cols[0].write(record.date.isoformat())
        cols[1].write(record.category.value)
        cols[2].write(record.description or "")
        cols[3].write(f"{converter.primary_currency} {record.amount_primary:,.2f}")
        cols[4].write(f"{converter.secondary_currency} {record.amount_secondary:,.2f}")
        if ledger_flow.is_own_ledger and cols[5].button("🗑️", key=f"delete_{record.id}"):
            show_result(run_async(ledger_flow.delete_expense(record.id)))
            st.rerun()

    if visible:
        export = run_async(ledger_flow.export_visible(ledger_filter)).data
        st.download_button(
            "⬇️ Download",
            data=export.content,
            file_name=export.filename,
            mime=export.media_type,
        )

    st.markdown("---")
    render_summary(ledger_flow, ledger_filter)


# =============================================================================
# CONNECT
# =============================================================================

def render_connect_page(connection_flow: ConnectionFlow):
    """Render the connection management page."""
    st.title("🤝 Connect")
    st.markdown(f"Your user ID: `{connection_flow.session.user_id}`")
    st.caption("Share it with your partner so they can connect to you.")

    result = run_async(connection_flow.fetch_connections())
    if not result.ok:
        show_result(result)
        return

    st.subheader("Connections")
    if not result.data:
        st.info("You are not connected to anyone yet.")
    for index, peer in enumerate(result.data):
        col1, col2 = st.columns([4, 1])
        label = f"{peer} (partner)" if index == 0 else peer
        col1.write(label)
        if col2.button("Disconnect", key=f"disconnect_{peer}"):
            show_result(run_async(connection_flow.disconnect(peer)))
            st.rerun()

    st.subheader("Add a connection")
    target = st.text_input("Partner's user ID")
    if st.button("Connect", type="primary"):
        show_result(run_async(connection_flow.connect(target)))


# =============================================================================
# SETTINGS
# =============================================================================

def render_settings_page():
    """Render the settings page."""
    st.title("⚙️ Settings")

    st.markdown("### Configuration Status")
    status = validate_all_settings()
    sections = [
        ("Ledger (currencies and rates)", "ledger"),
        ("Google Sheets (storage)", "google_sheets"),
        ("Application", "app"),
    ]
    for name, key in sections:
        if status.get(key, False):
            st.success(f"✅ {name}")
        else:
            error = status.get(f"{key}_error", "Not configured")
            st.error(f"❌ {name} - {error}")

    if status.get("ledger"):
        ledger = get_settings().ledger
        st.markdown("### Exchange Rates")
        st.markdown(
            f"- 1 {ledger.primary_currency} = {ledger.primary_to_secondary_rate} "
            f"{ledger.secondary_currency}\n"
            f"- 1 {ledger.secondary_currency} = {ledger.secondary_to_primary_rate} "
            f"{ledger.primary_currency}\n"
            f"- Amount update policy: `{ledger.amount_update_policy.value}`"
        )

    st.markdown("---")
    st.markdown(
        "To configure the application, set `LEDGER_*`, `GOOGLE_SHEETS_*` and "
        "application variables in the environment or a `.env` file."
    )


if __name__ == "__main__":
    main()
