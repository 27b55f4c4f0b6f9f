"""
Streamlit Dashboard for finledger

DESIGN PRINCIPLES:
1. The balance shown is either correct or explicitly "unavailable"
2. The month start-day is visible and changeable in one place
3. Recurring entries are marked so users know where they came from
4. No hidden actions: every write is a button press
"""

import asyncio
import logging
from datetime import date
from decimal import Decimal

import streamlit as st
from dateutil.relativedelta import relativedelta

from finledger.config import get_settings, validate_all_settings
from finledger.errors import BalanceUnavailableError, LedgerError
from finledger.models.ledger import EntryStatus
from finledger.orchestrator import LedgerService, create_app_components
from finledger.periods import MAX_START_DAY, MIN_START_DAY, period_for_date


st.set_page_config(
    page_title="finledger",
    page_icon="💰",
    layout="wide",
    initial_sidebar_state="expanded",
)


def run_async(coro):
    """Helper to run async functions in Streamlit."""
    loop = asyncio.new_event_loop()
    asyncio.set_event_loop(loop)
    try:
        return loop.run_until_complete(coro)
    finally:
        loop.close()


@st.cache_resource
def get_service() -> LedgerService:
    """Get or create the ledger service (cached)."""
    return create_app_components()


def format_money(value: Decimal) -> str:
    currency = get_settings().ledger.currency
    return f"{currency} {value:,.2f}"


def main():
    logging.basicConfig(level=get_settings().app.log_level, format="%(message)s")
    service = get_service()

    st.sidebar.title("💰 finledger")
    st.sidebar.markdown("---")

    page = st.sidebar.radio(
        "Navigate to:",
        ["📊 Period", "🏦 Accounts", "⚙️ Settings"],
        index=0,
    )

    if "reference_date" not in st.session_state:
        st.session_state.reference_date = date.today()

    if page == "📊 Period":
        render_period_page(service)
    elif page == "🏦 Accounts":
        render_accounts_page(service)
    elif page == "⚙️ Settings":
        render_settings_page(service)


def render_period_page(service: LedgerService):
    start_day = service.get_month_start_day()
    reference = st.session_state.reference_date
    period = period_for_date(reference, start_day)

    col_prev, col_title, col_next = st.columns([1, 4, 1])
    with col_prev:
        if st.button("◀ Previous"):
            st.session_state.reference_date = period.start_date - relativedelta(days=1)
            st.rerun()
    with col_title:
        last_day = period.end_date_exclusive - relativedelta(days=1)
        st.title(f"Period {period.key}")
        st.caption(f"{period.start_date:%d/%m/%Y} to {last_day:%d/%m/%Y} (starts on day {start_day})")
    with col_next:
        if st.button("Next ▶"):
            st.session_state.reference_date = period.end_date_exclusive
            st.rerun()

    # Balance card
    try:
        balance = run_async(service.get_period_balance(reference))
    except BalanceUnavailableError as e:
        st.error(f"Balance unavailable: {e.reason}")
        balance = None

    if balance is not None:
        cols = st.columns(5)
        cols[0].metric("Carry-over", format_money(balance.carry_over))
        cols[1].metric("Income", format_money(balance.income))
        cols[2].metric("Expenses", format_money(balance.expenses))
        cols[3].metric("Paid invoices", format_money(balance.paid_invoices))
        cols[4].metric("Balance", format_money(balance.balance))
        if balance.carry_over < 0:
            st.warning("This period starts with a negative carry-over.")

    # Alerts
    if period.contains(date.today()):
        try:
            alerts = run_async(service.get_alerts())
        except LedgerError as e:
            st.error(f"Alerts unavailable: {e}")
        else:
            if alerts.balance_risk:
                st.error(
                    f"Balance may go negative by {format_money(alerts.balance_risk.shortfall)} "
                    f"by {alerts.balance_risk.risk_date:%d/%m}"
                )
            for group in alerts.groups:
                st.warning(
                    f"{group.date:%d/%m}: "
                    + ", ".join(f"{a.entry.description} ({a.urgency.value})" for a in group.alerts)
                    + f" - {format_money(group.total)}"
                )
            for alert in alerts.invoice_alerts:
                st.info(f"{alert.card_name}: {alert.message}")

    # Entries
    st.markdown("### Entries")
    entries = run_async(service.list_period_entries(reference))
    if not entries:
        st.info("No entries in this period yet.")
    for entry in entries:
        col_desc, col_amount, col_status, col_action = st.columns([4, 2, 2, 1])
        col_desc.write(("🔁 " if entry.is_recurring else "") + f"{entry.date:%d/%m} {entry.description}")
        col_amount.write(format_money(entry.amount))
        col_status.write(entry.status.value)
        if entry.status != EntryStatus.PAID and col_action.button("Pay", key=f"pay-{entry.id}"):
            run_async(service.update_entry_status(entry.id, EntryStatus.PAID))
            st.rerun()

    with st.expander("Add expense"):
        with st.form("add_expense"):
            entry_date = st.date_input("Date", value=reference)
            description = st.text_input("Description")
            category = st.text_input("Category", value="Outros")
            amount = st.number_input("Amount", min_value=0.0, step=0.01)
            planned = st.checkbox("Planned (not paid yet)")
            if st.form_submit_button("Save"):
                try:
                    run_async(service.add_expense(
                        entry_date=entry_date,
                        description=description,
                        category=category,
                        amount=Decimal(str(amount)).quantize(Decimal("0.01")),
                        status=EntryStatus.PLANNED if planned else EntryStatus.PAID,
                    ))
                    st.success("Saved")
                    st.rerun()
                except (LedgerError, ValueError) as e:
                    st.error(str(e))


def render_accounts_page(service: LedgerService):
    st.title("🏦 Accounts")

    try:
        accounts = run_async(service.list_accounts())
        balances = run_async(service.get_account_balances())
        total = run_async(service.get_total_balance())
    except LedgerError as e:
        st.error(f"Account balances unavailable: {e}")
        return

    st.metric("Total", format_money(total))
    for account in accounts:
        label = account.name if account.is_active else f"{account.name} (archived)"
        st.write(f"**{label}** ({account.type.value}): {format_money(balances[account.id])}")

    with st.expander("New account"):
        with st.form("new_account"):
            name = st.text_input("Name")
            initial = st.number_input("Initial balance", step=0.01)
            if st.form_submit_button("Create"):
                run_async(service.create_account(
                    name=name,
                    initial_balance=Decimal(str(initial)).quantize(Decimal("0.01")),
                ))
                st.rerun()


def render_settings_page(service: LedgerService):
    st.title("⚙️ Settings")

    st.markdown("### Month start day")
    current = service.get_month_start_day()
    day = st.number_input(
        "Financial month starts on day",
        min_value=MIN_START_DAY,
        max_value=MAX_START_DAY,
        value=current,
        step=1,
    )
    st.caption("Changing this re-groups every past period, so historical balances will change.")
    if st.button("Save start day") and int(day) != current:
        run_async(service.set_month_start_day(int(day)))
        st.success(f"Month now starts on day {int(day)}")

    st.markdown("---")
    st.markdown("### Data check")
    st.caption("Looks for records that point at data which no longer exists.")
    if st.button("Check stored data"):
        result, message = run_async(service.validate_facts())
        if not result.issues:
            st.success(message)
        elif result.is_valid:
            st.warning(message)
        else:
            st.error(message)

    st.markdown("---")
    st.markdown("### Connection Status")
    status = validate_all_settings()
    for name, key in [("Ledger", "ledger"), ("Google Sheets (Storage)", "google_sheets")]:
        if key not in status:
            continue
        if status[key]:
            st.success(f"✅ {name} - OK")
        else:
            st.error(f"❌ {name} - {status.get(f'{key}_error', 'Not configured')}")


if __name__ == "__main__":
    main()
