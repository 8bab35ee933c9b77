"""
Streamlit Frontend for Ledger Bank

The pages a customer uses: sign in or register, see accounts,
open an account, make deposits and withdrawals, read the statement
and the notification center.

DESIGN PRINCIPLES:
1. Simple, clear interface
2. Error messages from the bank are shown exactly as returned
3. Visual feedback for all operations
4. No hidden actions

The session token lives in st.session_state under the cookie name, so
the same token format is used as by a cookie-based front end.
"""

import asyncio
import threading

import streamlit as st

from ledger.models.banking import AccountType, TransactionType
from ledger.orchestrator import BankingService, create_app_components


# Page configuration
st.set_page_config(
    page_title="Ledger Bank",
    page_icon="🏦",
    layout="wide",
    initial_sidebar_state="expanded",
)

# Custom CSS for better UX
st.markdown("""
<style>
    .stButton>button {
        width: 100%;
        margin-top: 10px;
    }
    .success-box {
        padding: 20px;
        background-color: #d4edda;
        border-radius: 10px;
        border-left: 5px solid #28a745;
        margin: 10px 0;
    }
    .big-number {
        font-size: 2.5em;
        font-weight: bold;
        color: #2c3e50;
    }
</style>
""", unsafe_allow_html=True)


@st.cache_resource
def get_event_loop() -> asyncio.AbstractEventLoop:
    """One long-lived loop for all sessions; the account locks are bound to it."""
    loop = asyncio.new_event_loop()
    threading.Thread(target=loop.run_forever, daemon=True).start()
    return loop


def run_async(coro):
    """Helper to run async functions in Streamlit."""
    return asyncio.run_coroutine_threadsafe(coro, get_event_loop()).result()


@st.cache_resource
def get_service() -> BankingService:
    """Get or create the banking service (cached)."""
    service = create_app_components()
    run_async(service.startup())
    return service


def current_token(service: BankingService):
    return st.session_state.get(service.sessions.cookie_name)


def main():
    """Main application entry point."""
    service = get_service()
    token = current_token(service)
    user = run_async(service.current_user(token))

    st.sidebar.title("🏦 Ledger Bank")
    st.sidebar.markdown("---")

    if user is None:
        render_auth_page(service)
        return

    st.sidebar.markdown(f"Signed in as **{user.full_name}**")
    page = st.sidebar.radio(
        "Navigate to:",
        ["🏠 Accounts", "➕ Open Account", "💸 Deposit / Withdraw",
         "📜 History", "🔔 Notifications", "👤 Profile"],
        index=0,
    )

    st.sidebar.markdown("---")
    if st.sidebar.button("Log out"):
        run_async(service.logout(token))
        st.session_state.pop(service.sessions.cookie_name, None)
        st.rerun()

    if page == "🏠 Accounts":
        render_accounts_page(service, token)
    elif page == "➕ Open Account":
        render_open_account_page(service, token)
    elif page == "💸 Deposit / Withdraw":
        render_transaction_page(service, token)
    elif page == "📜 History":
        render_history_page(service, token)
    elif page == "🔔 Notifications":
        render_notifications_page(service, token)
    elif page == "👤 Profile":
        render_profile_page(service, token, user)


def render_auth_page(service: BankingService):
    """Render the sign-in and registration forms."""
    st.title("Welcome to Ledger Bank")
    login_tab, register_tab = st.tabs(["Sign in", "Register"])

    with login_tab:
        with st.form("login"):
            email = st.text_input("Email")
            password = st.text_input("Password", type="password")
            submitted = st.form_submit_button("Sign in", type="primary")

        if submitted:
            result = run_async(service.login(email, password))
            if result.success:
                st.session_state[service.sessions.cookie_name] = result.token
                st.rerun()
            else:
                st.error(result.error)

    with register_tab:
        with st.form("register"):
            col1, col2 = st.columns(2)
            with col1:
                first_name = st.text_input("First name *")
            with col2:
                last_name = st.text_input("Last name *")
            email = st.text_input("Email *")
            phone = st.text_input("Phone (optional)")
            password = st.text_input("Password *", type="password")
            confirm = st.text_input("Confirm password *", type="password")
            submitted = st.form_submit_button("Create my login", type="primary")

        if submitted:
            result = run_async(service.register(
                first_name=first_name,
                last_name=last_name,
                email=email,
                phone=phone,
                password=password,
                confirm_password=confirm,
            ))
            if result.success:
                st.success("Registration complete. You can sign in now.")
            else:
                st.error(result.error)


def render_accounts_page(service: BankingService, token: str):
    """Render the accounts overview."""
    st.title("🏠 Your Accounts")
    accounts = run_async(service.get_accounts(token))

    if not accounts:
        st.info("You have no accounts yet. Use 'Open Account' to open your first one.")
        return

    total = sum(account.balance for account in accounts)
    st.markdown(f'<div class="big-number">${total:,.2f}</div>', unsafe_allow_html=True)
    st.markdown("Total balance")
    st.markdown("---")

    for account in accounts:
        with st.container(border=True):
            col1, col2 = st.columns([3, 1])
            with col1:
                st.subheader(f"{account.account_type.value} {account.masked_number}")
                st.caption(f"Opened {account.created_at:%d %B %Y}")
            with col2:
                st.metric("Balance", f"${account.balance:,.2f}")

            recent = run_async(service.get_recent_for_account(token, account.id))
            for entry in recent:
                sign = "+" if entry.type is TransactionType.DEPOSIT else "-"
                st.markdown(
                    f"{entry.created_at:%d %b %Y} · {entry.description} · "
                    f"**{sign}${entry.amount:,.2f}**"
                )


def render_open_account_page(service: BankingService, token: str):
    """Render the open-account form."""
    st.title("➕ Open an Account")
    st.markdown("Checking accounts need $25 to open, Savings accounts $500.")

    with st.form("open_account"):
        account_type = st.selectbox(
            "Account type *",
            options=list(AccountType),
            format_func=lambda x: x.value,
        )
        deposit = st.number_input(
            "Initial deposit ($) *",
            min_value=0.0,
            step=1.0,
            format="%.2f",
        )
        submitted = st.form_submit_button("Open account", type="primary")

    if submitted:
        result = run_async(service.create_account(token, account_type.value, deposit))
        if result.success:
            account = result.account
            st.markdown(f"""
            <div class="success-box">
                <h3>✅ Account opened</h3>
                <p><strong>{account.account_type.value}</strong> {account.account_number}</p>
                <p><strong>Balance:</strong> ${account.balance:,.2f}</p>
            </div>
            """, unsafe_allow_html=True)
        else:
            st.error(result.error)


def render_transaction_page(service: BankingService, token: str):
    """Render the deposit and withdrawal form."""
    st.title("💸 Deposit or Withdraw")
    accounts = run_async(service.get_accounts(token))

    if not accounts:
        st.info("Open an account first.")
        return

    with st.form("transaction", clear_on_submit=True):
        account = st.selectbox(
            "Account *",
            options=accounts,
            format_func=lambda a: f"{a.account_type.value} {a.masked_number} (${a.balance:,.2f})",
        )
        kind = st.radio(
            "Type *",
            options=list(TransactionType),
            format_func=lambda x: x.value.title(),
            horizontal=True,
        )
        amount = st.number_input("Amount ($) *", min_value=0.0, step=1.0, format="%.2f")
        description = st.text_input("Description (optional)")
        submitted = st.form_submit_button("Submit", type="primary")

    if submitted:
        result = run_async(service.submit_transaction(
            token,
            account_id=account.id,
            transaction_type=kind.value,
            amount=amount,
            description=description,
        ))
        if result.success:
            st.success(
                f"{kind.value.title()} of ${result.transaction.amount:,.2f} recorded. "
                f"New balance: ${result.account.balance:,.2f}"
            )
        else:
            st.error(result.error)


def render_history_page(service: BankingService, token: str):
    """Render the transaction statement."""
    st.title("📜 Transaction History")
    history = run_async(service.get_history(token))

    if not history:
        st.info("No transactions yet.")
        return

    st.dataframe(
        [
            {
                "Date": entry.created_at.strftime("%Y-%m-%d %H:%M"),
                "Account": entry.account_number,
                "Type": entry.type.value.title(),
                "Description": entry.description,
                "Amount": f"{'+' if entry.signed_amount > 0 else '-'}${entry.amount:,.2f}",
            }
            for entry in history
        ],
        use_container_width=True,
        hide_index=True,
    )


def render_notifications_page(service: BankingService, token: str):
    """Render the notification center."""
    st.title("🔔 Notifications")
    notifications = run_async(service.get_notifications(token))

    if not notifications:
        st.info("Nothing new.")
        return

    for notification in notifications:
        with st.container(border=True):
            col1, col2 = st.columns([4, 1])
            with col1:
                marker = "" if notification.read else "🔵 "
                st.markdown(f"{marker}**{notification.title}**")
                st.markdown(notification.message)
                st.caption(f"{notification.created_at:%d %b %Y %H:%M}")
            with col2:
                if not notification.read and st.button("Mark read", key=notification.id):
                    run_async(service.mark_notification_read(token, notification.id))
                    st.rerun()


def render_profile_page(service: BankingService, token: str, user):
    """Render the profile editor."""
    st.title("👤 Profile")

    with st.form("profile"):
        col1, col2 = st.columns(2)
        with col1:
            first_name = st.text_input("First name", value=user.first_name)
        with col2:
            last_name = st.text_input("Last name", value=user.last_name)
        email = st.text_input("Email", value=user.email)
        phone = st.text_input("Phone", value=user.phone or "")
        submitted = st.form_submit_button("Save", type="primary")

    if submitted:
        result = run_async(service.update_profile(token, {
            "firstName": first_name,
            "lastName": last_name,
            "email": email,
            "phone": phone or None,
        }))
        if result.success:
            st.success("Profile updated.")
        else:
            st.error(result.error)


if __name__ == "__main__":
    main()
