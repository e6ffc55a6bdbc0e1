"""
Streamlit Frontend for FamilyFinance

The household's view of its money: transactions, budgets, family
members, goals and bills, plus the AI features.

DESIGN PRINCIPLES:
1. The UI never changes data directly; every edit goes through the store
2. Every edit is saved right away (flush after the mutation)
3. A refused edit is explained, never silently dropped
4. Clear error messages in simple language
"""

import asyncio
from datetime import date

import streamlit as st

from financeflow.agents import AIError, Tab, parse_local_command, visible_messages
from financeflow.config import validate_all_settings
from financeflow.models import (
    EXPENSE_CATEGORIES,
    SELF_MEMBER_NAME,
    ChatMessage,
    Gender,
    TransactionType,
    categories_for,
)
from financeflow.orchestrator import AppComponents, create_app_components
from financeflow.services.auth import AuthError
from financeflow.state import MutationResult, MutationStatus, compute_goal_progress


# Page configuration
st.set_page_config(
    page_title="Family FinanceFlow",
    page_icon="💰",
    layout="wide",
    initial_sidebar_state="expanded",
)

PAGES = [
    Tab("dashboard", "📊 Dashboard"),
    Tab("transactions", "💸 Transactions"),
    Tab("budgets", "🎯 Budgets"),
    Tab("family", "👨‍👩‍👧 Family"),
    Tab("tip", "💡 Financial Tip"),
    Tab("dream", "🌈 Dream Planner"),
    Tab("video", "🎬 Video Story"),
    Tab("assistant", "🤖 Assistant"),
    Tab("settings", "⚙️ Settings"),
]

REJECTION_MESSAGES = {
    "empty_name": "Please enter a name.",
    "duplicate_name": "A family member with that name already exists.",
    "reserved_name": f'"{SELF_MEMBER_NAME}" is reserved for you.',
}


def run_async(coro):
    """Helper to run async functions in Streamlit."""
    loop = asyncio.new_event_loop()
    asyncio.set_event_loop(loop)
    try:
        return loop.run_until_complete(coro)
    finally:
        loop.close()


@st.cache_resource
def get_components() -> AppComponents:
    """Get or create application components (cached)."""
    try:
        return create_app_components(use_storage=True)
    except Exception as e:
        st.error(f"Failed to initialize: {e}")
        st.stop()


def rupees(amount) -> str:
    return f"₹{amount:,.2f}"


def apply(components: AppComponents, action: str, result: MutationResult, success: str) -> None:
    """Save an applied edit, or explain why nothing happened."""
    if result.status == MutationStatus.APPLIED:
        if not run_async(components.sync.flush()):
            st.warning("Saved on this device. We'll retry uploading with your next change.")
        st.session_state.flash = success
        st.rerun()
    elif result.status == MutationStatus.REJECTED:
        run_async(components.record_rejection(action, result))
        st.error(REJECTION_MESSAGES.get(result.reason, "That change couldn't be made."))
    else:
        st.info("Nothing to change.")


def main():
    """Main application entry point."""
    components = get_components()
    sync = components.sync

    if not sync.is_loaded:
        with st.spinner("Loading your data..."):
            run_async(sync.restore_session())

    render_sidebar(components)

    if sync.session is None:
        render_signed_out()
        return

    if "flash" in st.session_state:
        st.success(st.session_state.pop("flash"))

    page = st.session_state.get("page", PAGES[0].id)
    render = {
        "dashboard": render_dashboard,
        "transactions": render_transactions_page,
        "budgets": render_budgets_page,
        "family": render_family_page,
        "tip": render_tip_page,
        "dream": render_dream_page,
        "video": render_video_page,
        "assistant": render_assistant_page,
        "settings": render_settings_page,
    }[page]

    try:
        render(components)
    except Exception as e:
        run_async(components.audit_logger.log_error(
            error_type=type(e).__name__,
            error_message=str(e),
            details={"page": page},
        ))
        st.error("Something went wrong on this page. Please try again.")


# =============================================================================
# SIDEBAR AND AUTH
# =============================================================================

def render_sidebar(components: AppComponents):
    st.sidebar.title("💰 Family FinanceFlow")
    st.sidebar.markdown("---")

    session = components.sync.session
    if session is None:
        return

    labels = {tab.id: tab.label for tab in PAGES}
    current = st.session_state.get("page", PAGES[0].id)
    choice = st.sidebar.radio(
        "Navigate to:",
        [tab.id for tab in PAGES],
        index=[tab.id for tab in PAGES].index(current),
        format_func=labels.get,
    )
    st.session_state.page = choice

    st.sidebar.markdown("---")
    st.sidebar.caption(f"Signed in as {session.email}")
    if st.sidebar.button("Sign out"):
        sign_out(components)


def sign_out(components: AppComponents):
    run_async(components.sync.flush())
    run_async(components.sync.sign_out())
    st.session_state.pop("chat", None)
    st.session_state.page = PAGES[0].id
    st.rerun()


def render_signed_out():
    components = get_components()
    st.title("Welcome to Family FinanceFlow")
    st.markdown("Track your household's income, spending, budgets and goals in one place.")

    sign_in_tab, sign_up_tab = st.tabs(["Sign in", "Create account"])
    with sign_in_tab:
        with st.form("sign_in"):
            email = st.text_input("Email")
            password = st.text_input("Password", type="password")
            submitted = st.form_submit_button("Sign in", type="primary")
        if submitted:
            authenticate(components, components.auth.sign_in, email, password)

    with sign_up_tab:
        with st.form("sign_up"):
            email = st.text_input("Email", key="sign_up_email")
            password = st.text_input("Password", type="password", key="sign_up_password")
            submitted = st.form_submit_button("Create account", type="primary")
        if submitted:
            authenticate(components, components.auth.sign_up, email, password, new_account=True)


def authenticate(
    components: AppComponents,
    method,
    email: str,
    password: str,
    new_account: bool = False,
):
    try:
        session = run_async(method(email, password))
    except AuthError as e:
        st.error(str(e))
        return

    if run_async(components.sync.on_auth_success(session, new_account)):
        st.rerun()
    else:
        st.error("We couldn't load your data. Please sign in again.")


# =============================================================================
# DASHBOARD
# =============================================================================

def render_dashboard(components: AppComponents):
    store = components.store
    st.title("📊 Dashboard")

    totals = store.totals
    col1, col2, col3 = st.columns(3)
    col1.metric("Total Income", rupees(totals.total_income))
    col2.metric("Total Expenses", rupees(totals.total_expenses))
    col3.metric("Balance", rupees(totals.balance))

    left, right = st.columns(2)
    with left:
        st.subheader("Spending by Category")
        breakdown = store.expense_breakdown
        if breakdown:
            st.bar_chart({entry.category: float(entry.amount) for entry in breakdown})
        else:
            st.info("No expenses yet.")

        st.subheader("Recent Transactions")
        for t in store.recent_transactions():
            sign = "+" if t.type == TransactionType.INCOME else "-"
            st.markdown(f"{t.date or 'No date'} · **{t.description}** · {sign}{rupees(t.amount)} · {t.member_name}")

    with right:
        st.subheader("Family Hub")
        st.caption("Spending over the last 30 days")
        for activity in store.family_activity:
            top = f" · mostly {activity.top_category}" if activity.top_category else ""
            st.markdown(f"**{activity.name}**: {rupees(activity.total_spent)}{top}")

    st.markdown("---")
    goals_col, bills_col = st.columns(2)
    with goals_col:
        render_goals(components)
    with bills_col:
        render_recurring_payments(components)


def render_goals(components: AppComponents):
    store = components.store
    st.subheader("🏁 Savings Goals")

    for goal in store.goals:
        progress = compute_goal_progress(goal)
        st.markdown(f"**{goal.name}**: {rupees(goal.current_amount)} of {rupees(goal.target_amount)}")
        st.progress(min(float(progress), 100.0) / 100)
        with st.expander("Update"):
            saved = st.number_input(
                "Saved so far",
                min_value=0.0,
                value=float(goal.current_amount),
                key=f"goal_saved_{goal.id}",
            )
            update_col, delete_col = st.columns(2)
            if update_col.button("Save", key=f"goal_update_{goal.id}"):
                result = store.update_goal(goal.id, {"current_amount": saved})
                apply(components, "update_goal", result, "Goal updated.")
            if delete_col.button("Delete", key=f"goal_delete_{goal.id}"):
                apply(components, "delete_goal", store.delete_goal(goal.id), "Goal deleted.")

    with st.form("add_goal", clear_on_submit=True):
        name = st.text_input("Goal name")
        target = st.number_input("Target amount (₹)", min_value=0.0, step=1000.0)
        if st.form_submit_button("Add goal"):
            result = store.add_goal({"name": name, "target_amount": target})
            apply(components, "add_goal", result, "Goal added.")


def render_recurring_payments(components: AppComponents):
    store = components.store
    st.subheader("🔁 Recurring Payments")
    st.caption(store.due_payments_summary)

    for upcoming in store.upcoming_payments:
        payment = upcoming.payment
        col1, col2 = st.columns([4, 1])
        col1.markdown(
            f"**{payment.description}** · {rupees(payment.amount)} · "
            f"due {upcoming.next_due_date.strftime('%d %b')} ({upcoming.days_until_due} days)"
        )
        if col2.button("Delete", key=f"payment_delete_{payment.id}"):
            result = store.delete_recurring_payment(payment.id)
            apply(components, "delete_recurring_payment", result, "Payment removed.")

    with st.form("add_payment", clear_on_submit=True):
        description = st.text_input("Description")
        amount = st.number_input("Amount (₹)", min_value=0.0, step=100.0)
        due_day = st.number_input("Due day of month", min_value=1, max_value=31, value=1)
        if st.form_submit_button("Add payment"):
            result = store.add_recurring_payment(
                {"description": description, "amount": amount, "due_day": due_day}
            )
            apply(components, "add_recurring_payment", result, "Payment added.")


# =============================================================================
# TRANSACTIONS, BUDGETS, FAMILY
# =============================================================================

def render_transactions_page(components: AppComponents):
    store = components.store
    st.title("💸 Transactions")

    kind = st.radio(
        "Type",
        list(TransactionType),
        format_func=lambda k: k.value.title(),
        horizontal=True,
    )
    with st.form("add_transaction", clear_on_submit=True):
        description = st.text_input("Description")
        amount = st.number_input("Amount (₹)", min_value=0.0, step=50.0)
        when = st.date_input("Date", value=date.today())
        category = st.selectbox("Category", categories_for(kind))
        member = st.selectbox(
            "Family member",
            [SELF_MEMBER_NAME, *(m.name for m in store.family_members)],
        )
        if st.form_submit_button("Add transaction", type="primary"):
            result = store.add_transaction({
                "description": description,
                "amount": amount,
                "date": when,
                "type": kind,
                "category": category,
                "member": member,
            })
            apply(components, "add_transaction", result, "Transaction added.")

    st.subheader("History")
    if not store.transactions:
        st.info("Your transactions will appear here once you add them.")
    for t in store.transactions:
        col1, col2 = st.columns([5, 1])
        sign = "+" if t.type == TransactionType.INCOME else "-"
        col1.markdown(
            f"{t.date or 'No date'} · **{t.description}** · {t.category} · "
            f"{sign}{rupees(t.amount)} · {t.member_name}"
        )
        if col2.button("Delete", key=f"transaction_delete_{t.id}"):
            result = store.delete_transaction(t.id)
            apply(components, "delete_transaction", result, "Transaction deleted.")


def render_budgets_page(components: AppComponents):
    store = components.store
    st.title("🎯 Budgets")

    for progress in store.budget_progress:
        st.markdown(
            f"**{progress.category}**: {rupees(progress.spent)} of {rupees(progress.budget)}"
            + (" ⚠️ over budget" if progress.over_budget else "")
        )
        st.progress(min(float(progress.percentage), 100.0) / 100)

    st.markdown("---")
    with st.form("update_budget"):
        categories = [b.category for b in store.budgets]
        category = st.selectbox("Category", categories or list(EXPENSE_CATEGORIES))
        amount = st.number_input("Monthly budget (₹)", min_value=0.0, step=500.0)
        if st.form_submit_button("Update budget"):
            result = store.update_budget(category, amount)
            apply(components, "update_budget", result, f"{category} budget updated.")


def render_family_page(components: AppComponents):
    store = components.store
    st.title("👨‍👩‍👧 Family")
    st.caption(f'Transactions without a member belong to "{SELF_MEMBER_NAME}".')

    for member in store.family_members:
        col1, col2 = st.columns([4, 1])
        col1.markdown(f"**{member.name}** · {member.gender.value}")
        if col2.button("Remove", key=f"member_delete_{member.id}"):
            result = store.delete_family_member(member.id)
            apply(
                components,
                "delete_family_member",
                result,
                f"{member.name} removed. Their transactions now belong to {SELF_MEMBER_NAME}.",
            )

    with st.form("add_member", clear_on_submit=True):
        name = st.text_input("Name")
        gender = st.selectbox("Gender", list(Gender), format_func=lambda g: g.value.title())
        if st.form_submit_button("Add member", type="primary"):
            result = store.add_family_member(name, gender)
            apply(components, "add_family_member", result, f"{name.strip()} added.")


# =============================================================================
# AI FEATURES
# =============================================================================

def render_tip_page(components: AppComponents):
    st.title("💡 Financial Tip")
    if st.button("Get a tip", type="primary"):
        with st.spinner("Looking at your recent spending..."):
            try:
                tip = run_async(components.assistant.financial_tip())
                st.info(tip.tip)
            except AIError as e:
                st.error(e.user_message)


def render_dream_page(components: AppComponents):
    st.title("🌈 Dream Planner")
    dream = st.text_area("Describe your dream", placeholder="e.g., A family trip to Kerala")
    if st.button("Plan it", type="primary") and dream.strip():
        with st.spinner("Planning your dream..."):
            try:
                result = run_async(components.assistant.dream_plan(dream.strip()))
            except AIError as e:
                st.error(e.user_message)
                return

        plan = result.plan
        st.image(result.image_url)
        st.header(plan.title)
        st.markdown(plan.summary)
        col1, col2 = st.columns(2)
        col1.metric("Estimated cost", plan.estimated_cost)
        col2.metric("Timeline", plan.timeline)
        for number, step in enumerate(plan.steps, start=1):
            st.markdown(f"**{number}. {step.title}**: {step.description}")


def render_video_page(components: AppComponents):
    st.title("🎬 Video Story")
    prompt = st.text_area("What should the video show?")
    if st.button("Create video", type="primary") and prompt.strip():
        with st.spinner("Creating your video. This can take a few minutes..."):
            try:
                story = run_async(components.assistant.video_story(prompt.strip()))
            except AIError as e:
                st.error(e.user_message)
                return
        st.success("Your video is ready.")
        st.markdown(f"[Open video]({story.video_uri})")


def render_assistant_page(components: AppComponents):
    st.title("🤖 Assistant")

    version = components.store.version
    if "chat" not in st.session_state:
        st.session_state.chat = components.assistant.start_conversation()
        st.session_state.chat_version = version
    elif st.session_state.chat_version != version:
        st.session_state.chat = components.assistant.start_conversation(data_updated=True)
        st.session_state.chat_version = version

    for message in visible_messages(st.session_state.chat):
        with st.chat_message("user" if message.sender == "user" else "assistant"):
            st.markdown(message.text)

    text = st.chat_input("Ask about your finances")
    if not text:
        return

    messages = [*st.session_state.chat, ChatMessage(sender="user", text=text)]
    command = parse_local_command(text, PAGES)
    if command is not None:
        if command.action == "sign_out":
            sign_out(components)
        if command.action == "navigate":
            st.session_state.page = command.target
        if command.action == "set_theme":
            st.session_state.theme = command.target
        st.session_state.chat = [*messages, ChatMessage(sender="ai", text=command.reply)]
        st.rerun()

    try:
        reply = run_async(components.assistant.chat(messages))
        answer = reply.text
    except AIError as e:
        answer = e.user_message
    st.session_state.chat = [*messages, ChatMessage(sender="ai", text=answer)]
    st.rerun()


# =============================================================================
# SETTINGS
# =============================================================================

def render_settings_page(components: AppComponents):
    st.title("⚙️ Settings")

    st.markdown("### Connection Status")
    status = validate_all_settings()
    services = [
        ("Google Sheets (Storage)", "google_sheets"),
        ("Gemini (AI)", "gemini"),
        ("Sign-in tokens", "auth"),
    ]
    for name, key in services:
        if status.get(key, False):
            st.success(f"✅ {name} - Configured")
        else:
            error = status.get(f"{key}_error", "Not configured")
            st.error(f"❌ {name} - {error}")

    if not components.uses_google_sheets:
        st.warning("Data is kept in memory only and will be lost when the app stops.")

    st.markdown("---")
    st.markdown("### Configuration")
    st.markdown(
        "To configure the application, create a `.env` file with your API keys. "
        "See `.env.example` for the required variables."
    )


if __name__ == "__main__":
    main()
