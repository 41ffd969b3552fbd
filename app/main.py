"""
Streamlit Frontend for Expense Tracker

DESIGN PRINCIPLES:
1. Every page maps onto one store's verbs
2. Engine errors are shown as they are raised, never reinterpreted
3. The budget overview is the landing page

The UI holds no business rules. Overlap checks, spent bookkeeping and the
Other category guard all live in the stores.
"""

from datetime import date
from decimal import Decimal

import streamlit as st

from expense_tracker.config import validate_all_settings
from expense_tracker.errors import (
    ExpenseTrackerError,
    OverlapError,
    ValidationError,
    http_status_for,
)
from expense_tracker.models import (
    OTHER_CATEGORY_ID,
    BudgetPatch,
    CategoryPatch,
    ExpensePatch,
    IncomePatch,
)
from expense_tracker.orchestrator import ExpenseTracker, create_app_components


# Page configuration
st.set_page_config(
    page_title="Expense Tracker",
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
    .big-number {
        font-size: 2.5em;
        font-weight: bold;
        color: #2c3e50;
    }
</style>
""", unsafe_allow_html=True)


@st.cache_resource
def get_components() -> ExpenseTracker:
    """Get or create application components (cached)."""
    return create_app_components()


def show_error(error: ExpenseTrackerError) -> None:
    """Render an engine error with its status code and any field issues."""
    status = http_status_for(error)
    st.error(f"[{status}] {error}")
    if isinstance(error, ValidationError):
        for issue in error.issues:
            hint = f" 💡 {issue.suggested_fix}" if issue.suggested_fix else ""
            st.markdown(f"- **{issue.field}**: {issue.message}{hint}")
    elif isinstance(error, OverlapError) and error.conflicting_ids:
        st.markdown(f"Conflicting budget ids: {', '.join(map(str, error.conflicting_ids))}")


def category_picker(tracker: ExpenseTracker, label: str, key: str, include_other: bool = True):
    categories = [
        c for c in tracker.categories.list()
        if include_other or c.id != OTHER_CATEGORY_ID
    ]
    if not categories:
        st.info("No categories yet. Create one on the Categories page.")
        return None
    chosen = st.selectbox(
        label,
        options=categories,
        format_func=lambda c: c.name,
        key=key,
    )
    return chosen.id if chosen else None


def main():
    """Main application entry point."""
    try:
        tracker = get_components()
    except ExpenseTrackerError as e:
        st.title("💰 Expense Tracker")
        show_error(e)
        st.stop()

    st.sidebar.title("💰 Expense Tracker")
    st.sidebar.markdown("---")

    page = st.sidebar.radio(
        "Navigate to:",
        ["📊 Budgets", "🗂️ Categories", "🧾 Expenses", "💵 Income", "⚙️ Settings"],
        index=0,
    )

    st.sidebar.markdown("---")
    st.sidebar.markdown(
        """
        **How it works:**
        1. Create categories
        2. Set a budget per category and period
        3. Record expenses; budgets update themselves

        Deleting a category moves its expenses to **Other**.
        """
    )

    if page == "📊 Budgets":
        render_budgets_page(tracker)
    elif page == "🗂️ Categories":
        render_categories_page(tracker)
    elif page == "🧾 Expenses":
        render_expenses_page(tracker)
    elif page == "💵 Income":
        render_income_page(tracker)
    elif page == "⚙️ Settings":
        render_settings_page()


def render_budgets_page(tracker: ExpenseTracker):
    """Render the budget overview and budget forms."""
    st.title("📊 Budgets")

    overview = tracker.budget_overview()
    if overview:
        st.dataframe(
            [
                {
                    "ID": status.budget_id,
                    "Category": status.category_name,
                    "Period": f"{status.start_date} → {status.end_date}",
                    "Budget": f"{status.amount:,.2f}",
                    "Spent": f"{status.spent:,.2f}",
                    "Remaining": f"{status.remaining:,.2f}",
                    "Over?": "⚠️" if status.is_over_budget else "",
                }
                for status in overview
            ],
            use_container_width=True,
            hide_index=True,
        )
    else:
        st.info("No budgets yet.")

    st.markdown("---")
    col1, col2 = st.columns(2)

    with col1:
        st.markdown("### New budget")
        with st.form("new_budget"):
            category_id = category_picker(tracker, "Category", key="budget_category")
            amount = st.number_input("Amount", min_value=0.0, step=10.0, format="%.2f")
            start = st.date_input("Start date", value=date.today().replace(day=1))
            end = st.date_input("End date", value=date.today())
            if st.form_submit_button("Create budget") and category_id:
                try:
                    budget = tracker.budgets.create(category_id, Decimal(str(amount)), start, end)
                    st.success(f"Budget #{budget.id} created, already spent {budget.spent:,.2f}")
                except ExpenseTrackerError as e:
                    show_error(e)

    with col2:
        st.markdown("### Change or remove a budget")
        budget_ids = [status.budget_id for status in overview]
        if not budget_ids:
            st.caption("Nothing to change yet.")
            return
        with st.form("edit_budget"):
            budget_id = st.selectbox("Budget", options=budget_ids)
            new_amount = st.number_input(
                "New amount (0 keeps the current one)", min_value=0.0, step=10.0, format="%.2f",
            )
            change_dates = st.checkbox("Change the period")
            new_start = st.date_input("New start date", value=date.today().replace(day=1))
            new_end = st.date_input("New end date", value=date.today())
            update_clicked = st.form_submit_button("Update budget")
            delete_clicked = st.form_submit_button("Delete budget")

        if update_clicked:
            patch = BudgetPatch(
                amount=Decimal(str(new_amount)) if new_amount else None,
                start_date=new_start if change_dates else None,
                end_date=new_end if change_dates else None,
            )
            try:
                budget = tracker.budgets.update(budget_id, patch)
                st.success(f"Budget #{budget.id} updated, spent re-counted: {budget.spent:,.2f}")
            except ExpenseTrackerError as e:
                show_error(e)
        if delete_clicked:
            try:
                tracker.budgets.delete(budget_id)
                st.success(f"Budget #{budget_id} deleted")
            except ExpenseTrackerError as e:
                show_error(e)


def render_categories_page(tracker: ExpenseTracker):
    """Render the category list and forms."""
    st.title("🗂️ Categories")

    st.dataframe(
        [{"ID": c.id, "Name": c.name, "Description": c.description} for c in tracker.categories.list()],
        use_container_width=True,
        hide_index=True,
    )

    col1, col2 = st.columns(2)

    with col1:
        st.markdown("### New category")
        with st.form("new_category"):
            name = st.text_input("Name")
            description = st.text_input("Description")
            if st.form_submit_button("Create category"):
                try:
                    category = tracker.categories.create(name, description)
                    st.success(f"Category '{category.name}' created (#{category.id})")
                except ExpenseTrackerError as e:
                    show_error(e)

    with col2:
        st.markdown("### Rename or delete")
        with st.form("edit_category"):
            category_id = category_picker(
                tracker, "Category", key="edit_category_id", include_other=False,
            )
            new_name = st.text_input("New name (blank keeps the current one)")
            new_description = st.text_input("New description (blank keeps the current one)")
            update_clicked = st.form_submit_button("Update category")
            delete_clicked = st.form_submit_button("Delete category")

        if update_clicked and category_id:
            patch = CategoryPatch(
                name=new_name or None,
                description=new_description or None,
            )
            try:
                category = tracker.categories.update(category_id, patch)
                st.success(f"Category #{category.id} is now '{category.name}'")
            except ExpenseTrackerError as e:
                show_error(e)
        if delete_clicked and category_id:
            try:
                tracker.categories.delete(category_id)
                st.success("Category deleted; its expenses moved to Other")
            except ExpenseTrackerError as e:
                show_error(e)


def render_expenses_page(tracker: ExpenseTracker):
    """Render the expense list and forms."""
    st.title("🧾 Expenses")

    names = {c.id: c.name for c in tracker.categories.list()}
    expenses = tracker.expenses.list()
    if expenses:
        st.dataframe(
            [
                {
                    "ID": e.id,
                    "Date": e.date,
                    "Category": names.get(e.category_id, e.category_id),
                    "Amount": f"{e.amount:,.2f}",
                    "Description": e.description,
                }
                for e in expenses
            ],
            use_container_width=True,
            hide_index=True,
        )
    else:
        st.info("No expenses recorded yet.")

    col1, col2 = st.columns(2)

    with col1:
        st.markdown("### Record an expense")
        with st.form("new_expense"):
            category_id = category_picker(tracker, "Category", key="expense_category")
            amount = st.number_input("Amount", min_value=0.0, step=1.0, format="%.2f")
            day = st.date_input("Date", value=date.today(), max_value=date.today())
            description = st.text_input("Description")
            if st.form_submit_button("Save expense") and category_id:
                try:
                    expense = tracker.expenses.create(
                        category_id, Decimal(str(amount)), day, description,
                    )
                    st.success(f"Expense #{expense.id} saved")
                except ExpenseTrackerError as e:
                    show_error(e)

    with col2:
        st.markdown("### Change or remove an expense")
        if not expenses:
            st.caption("Nothing to change yet.")
            return
        with st.form("edit_expense"):
            expense_id = st.selectbox("Expense", options=[e.id for e in expenses])
            move = st.checkbox("Move to another category")
            new_category = category_picker(tracker, "New category", key="expense_new_category")
            new_amount = st.number_input(
                "New amount (0 keeps the current one)", min_value=0.0, step=1.0, format="%.2f",
            )
            new_description = st.text_input("New description (blank keeps the current one)")
            update_clicked = st.form_submit_button("Update expense")
            delete_clicked = st.form_submit_button("Delete expense")

        if update_clicked:
            patch = ExpensePatch(
                category_id=new_category if move else None,
                amount=Decimal(str(new_amount)) if new_amount else None,
                description=new_description or None,
            )
            try:
                tracker.expenses.update(expense_id, patch)
                st.success(f"Expense #{expense_id} updated")
            except ExpenseTrackerError as e:
                show_error(e)
        if delete_clicked:
            try:
                tracker.expenses.delete(expense_id)
                st.success(f"Expense #{expense_id} deleted")
            except ExpenseTrackerError as e:
                show_error(e)


def render_income_page(tracker: ExpenseTracker):
    """Render the income list and forms."""
    st.title("💵 Income")

    entries = tracker.income.list()
    total = sum((i.amount for i in entries), Decimal("0.00"))
    st.markdown(f'<p class="big-number">{total:,.2f}</p>', unsafe_allow_html=True)

    if entries:
        st.dataframe(
            [
                {"ID": i.id, "Date": i.date, "Source": i.source, "Amount": f"{i.amount:,.2f}"}
                for i in entries
            ],
            use_container_width=True,
            hide_index=True,
        )

    col1, col2 = st.columns(2)

    with col1:
        with st.form("new_income"):
            amount = st.number_input("Amount", min_value=0.0, step=10.0, format="%.2f")
            day = st.date_input("Date", value=date.today())
            source = st.text_input("Source")
            if st.form_submit_button("Add income"):
                try:
                    income = tracker.income.create(Decimal(str(amount)), day, source)
                    st.success(f"Income #{income.id} recorded")
                except ExpenseTrackerError as e:
                    show_error(e)

    with col2:
        if not entries:
            return
        with st.form("edit_income"):
            income_id = st.selectbox("Entry", options=[i.id for i in entries])
            new_amount = st.number_input(
                "New amount (0 keeps the current one)", min_value=0.0, step=10.0, format="%.2f",
            )
            new_source = st.text_input("New source (blank keeps the current one)")
            update_clicked = st.form_submit_button("Update income")
            delete_clicked = st.form_submit_button("Delete income")

        if update_clicked:
            patch = IncomePatch(
                amount=Decimal(str(new_amount)) if new_amount else None,
                source=new_source or None,
            )
            try:
                tracker.income.update(income_id, patch)
                st.success(f"Income #{income_id} updated")
            except ExpenseTrackerError as e:
                show_error(e)
        if delete_clicked:
            try:
                tracker.income.delete(income_id)
                st.success(f"Income #{income_id} deleted")
            except ExpenseTrackerError as e:
                show_error(e)


def render_settings_page():
    """Render the settings page."""
    st.title("⚙️ Settings")

    st.markdown("### Configuration Status")

    status = validate_all_settings()

    sections = [
        ("Database", "database"),
        ("Application", "app"),
    ]

    for name, key in sections:
        if status.get(key, False):
            st.success(f"✅ {name} settings loaded")
        else:
            error = status.get(f"{key}_error", "Not configured")
            st.error(f"❌ {name} - {error}")

    st.markdown("---")
    st.markdown(
        "Settings come from environment variables or a `.env` file. "
        "Set `DATABASE_URL` to point at another database; SQLite is the default."
    )


if __name__ == "__main__":
    main()
