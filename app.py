from __future__ import annotations

import asyncio
import logging
import os
from datetime import date, datetime
from pathlib import Path

import pandas as pd
import plotly.express as px
import streamlit as st

from analytics import (
    CUSTOMER_COLUMNS,
    PRODUCT_COLUMNS,
    TASK_COLUMNS,
    category_rollup,
    dashboard_summary,
    low_stock_products,
    monthly_summary,
    records_frame,
    task_status_counts,
)
from db import COLLECTIONS, DocumentStore
from exporters import backup_filename, backup_json, collection_to_csv, collection_to_json, export_filename
from invoice_export import (
    DEFAULT_PROFILE,
    invoice_pdf_filename,
    render_invoice_pdf,
    render_invoice_png,
)
from invoicing import compute_totals, price_line_item
from models import Customer, Product, Task, TaskType, WorkStatus
from state import (
    AppState,
    filter_products,
    filter_tasks,
    load_state,
    search_customers,
    search_invoices,
)

APP_TITLE = "Spectra Solar CRM"
PAGE_ICON = "☀️"
STATE_SESSION_KEY = "crm_app_state"
SECTIONS = [
    "Dashboard",
    "Customers",
    "Inventory",
    "Installations",
    "Invoices",
    "Analytics",
    "Settings",
]
STATUS_LABELS = {
    WorkStatus.PENDING: "Pending",
    WorkStatus.IN_PROGRESS: "In Progress",
    WorkStatus.COMPLETED: "Completed",
}
TASK_TYPE_LABELS = {
    TaskType.INSTALLATION: "Installation",
    TaskType.MAINTENANCE: "Maintenance",
    TaskType.INSPECTION: "Inspection",
}
BRAND_LOGO_PATH = Path(__file__).with_name("logo.png")

logging.basicConfig(
    level=(os.getenv("CRM_LOG_LEVEL", "INFO") or "INFO").upper(),
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)

st.set_page_config(
    page_title=APP_TITLE,
    page_icon=PAGE_ICON,
    layout="wide",
)


@st.cache_resource
def get_store() -> DocumentStore:
    return DocumentStore()


def get_state(reload: bool = False) -> AppState:
    if reload or STATE_SESSION_KEY not in st.session_state:
        st.session_state[STATE_SESSION_KEY] = asyncio.run(load_state(get_store()))
    return st.session_state[STATE_SESSION_KEY]


def get_profile_setting(state: AppState, key: str, default: str) -> str:
    return state.store.get_setting(f"profile.{key}", default)


def set_profile_setting(state: AppState, key: str, value: str) -> None:
    state.store.set_setting(f"profile.{key}", value)


def load_profile(state: AppState) -> dict:
    return {key: get_profile_setting(state, key, default) for key, default in DEFAULT_PROFILE.items()}


def money(state: AppState, value: float) -> str:
    currency = get_profile_setting(state, "currency", DEFAULT_PROFILE["currency"])
    return f"{currency}{float(value):,.2f}"


def to_iso(value: date | None) -> str | None:
    return value.isoformat() if value else None


def from_iso(value: str | None) -> date | None:
    if not value:
        return None
    parsed = pd.to_datetime(value, errors="coerce")
    return None if pd.isna(parsed) else parsed.date()


def render_kpi(label: str, value: str, caption: str = "") -> None:
    st.metric(label, value, help=caption or None)


def style_plotly(fig) -> None:
    axis_color = "rgba(51, 65, 85, 0.18)"
    fig.update_layout(
        paper_bgcolor="rgba(0,0,0,0)",
        plot_bgcolor="rgba(255,255,255,0.82)",
        font={"family": "Manrope, Avenir Next, Segoe UI, sans-serif", "color": "#111827"},
        colorway=["#3B82F6", "#10B981", "#F59E0B", "#EF4444", "#8B5CF6", "#06B6D4"],
        margin={"l": 22, "r": 22, "t": 52, "b": 24},
        legend_title_text="",
    )
    fig.update_xaxes(showgrid=True, gridcolor=axis_color, zeroline=False)
    fig.update_yaxes(showgrid=True, gridcolor=axis_color, zeroline=False)


def render_export_buttons(state: AppState, collection: str) -> None:
    records = state.collection(collection)
    if not records:
        st.caption(f"No {collection} to export yet.")
        return
    c1, c2 = st.columns(2)
    c1.download_button(
        "Export CSV",
        data=collection_to_csv(records).encode("utf-8"),
        file_name=export_filename(collection),
        mime="text/csv",
        key=f"export_{collection}_csv_btn",
    )
    c2.download_button(
        "Export JSON",
        data=collection_to_json(records).encode("utf-8"),
        file_name=export_filename(collection, "json"),
        mime="application/json",
        key=f"export_{collection}_json_btn",
    )


def render_dashboard(state: AppState) -> None:
    st.subheader("Dashboard")
    today = datetime.now()
    st.caption(f"{today.strftime('%B %Y')} - Monitor your solar installation business performance")

    summary = dashboard_summary(state.customers, state.products, state.tasks, state.invoices)
    month = summary["month"]

    c1, c2, c3, c4 = st.columns(4)
    with c1:
        render_kpi("Installations This Month", str(month["installations"]))
    with c2:
        render_kpi("Total Customers", str(summary["total_customers"]))
    with c3:
        render_kpi("kW Installed (Month)", f"{month['total_kw']:.1f} kW")
    with c4:
        render_kpi("Monthly Revenue", money(state, month["revenue"]))

    for alert in summary["alerts"]:
        message = f"{alert['message']} - see {alert['action']}."
        if alert["level"] == "warning":
            st.warning(message)
        else:
            st.info(message)

    left, right = st.columns(2)
    with left:
        st.markdown("**Recent Customers**")
        recent = summary["recent_customers"]
        if recent.empty:
            st.info("No customers yet.")
        else:
            st.dataframe(
                recent[["name", "email", "solar_capacity", "status"]],
                hide_index=True,
                use_container_width=True,
            )
    with right:
        st.markdown("**Upcoming Tasks**")
        upcoming = summary["upcoming_tasks"]
        if upcoming.empty:
            st.info("No open tasks.")
        else:
            st.dataframe(
                upcoming[["customer_name", "type", "status", "assigned_to", "scheduled_date"]],
                hide_index=True,
                use_container_width=True,
            )


def render_customers(state: AppState) -> None:
    st.subheader("Customers")
    st.caption("Manage customer records and solar installation details.")

    options = {"New customer": None}
    options.update({f"{c.name} ({c.phone or c.email or c.id})": c.id for c in state.customers})
    choice = st.selectbox("Add or edit", options=list(options), key="customer_edit_selector")
    editing = state.find_customer(options[choice]) if options[choice] else None
    suffix = editing.id if editing else "new"

    with st.form(f"customer_form_{suffix}", clear_on_submit=editing is None):
        st.markdown("**Edit Customer**" if editing else "**Add Customer**")
        a1, a2 = st.columns(2)
        name = a1.text_input("Name *", value=editing.name if editing else "")
        phone = a2.text_input("Phone", value=editing.phone if editing else "")
        b1, b2 = st.columns(2)
        email = b1.text_input("Email", value=editing.email if editing else "")
        status_options = list(STATUS_LABELS)
        status = b2.selectbox(
            "Status",
            options=status_options,
            index=status_options.index(editing.status) if editing else 0,
            format_func=STATUS_LABELS.get,
        )
        address = st.text_area("Address", value=editing.address if editing else "")
        c1, c2, c3 = st.columns(3)
        solar_capacity = c1.number_input(
            "Solar Capacity (kW)",
            min_value=0.0,
            step=0.5,
            value=float(editing.solar_capacity) if editing else 0.0,
        )
        monthly_bill = c2.number_input(
            "Monthly Bill",
            min_value=0.0,
            step=100.0,
            value=float(editing.monthly_bill) if editing else 0.0,
        )
        existing_install = from_iso(editing.installation_date) if editing else None
        has_install = c3.checkbox("Installed", value=existing_install is not None)
        installation_date = c3.date_input("Installation Date", value=existing_install or date.today())
        submitted = st.form_submit_button("Save Customer")

    if submitted:
        if not name.strip():
            st.error("Name is required.")
        else:
            values = {
                "name": name.strip(),
                "phone": phone.strip(),
                "email": email.strip(),
                "address": address.strip(),
                "solar_capacity": float(solar_capacity),
                "monthly_bill": float(monthly_bill),
                "installation_date": to_iso(installation_date) if has_install else None,
                "status": status,
            }
            try:
                if editing:
                    state.update_customer(editing.id, values)
                else:
                    state.add_customer(Customer(**values))
                st.success(f"Customer '{name.strip()}' saved.")
                st.rerun()
            except Exception as exc:
                st.error(f"Failed to save customer: {exc}")

    st.markdown("---")
    search = st.text_input("Search customers", placeholder="Name, email or phone", key="customer_search")
    matches = search_customers(state.customers, search)
    if not matches:
        st.info("No customers found.")
    else:
        view = records_frame(matches, CUSTOMER_COLUMNS)
        view["status"] = view["status"].map(lambda s: STATUS_LABELS[WorkStatus(s)])
        st.dataframe(view.drop(columns=["id"]), hide_index=True, use_container_width=True)

        with st.expander("Delete customers", expanded=False):
            labels = {f"{c.name} ({c.id})": c.id for c in matches}
            selected = st.multiselect("Customers to delete", options=list(labels), key="customer_delete_select")
            if st.button("Delete selected", key="customer_delete_btn", disabled=not selected):
                try:
                    deleted = state.delete_customers(labels[label] for label in selected)
                    st.success(f"Deleted {deleted} customer(s).")
                    st.rerun()
                except Exception as exc:
                    st.error(f"Could not delete customers: {exc}")

    render_export_buttons(state, "customers")


def render_inventory(state: AppState) -> None:
    st.subheader("Inventory")
    st.caption("Track stock levels, vendors and unit costs. Items at or below their threshold are flagged.")

    options = {"New product": None}
    options.update({f"{p.name} ({p.category or 'Other'})": p.id for p in state.products})
    choice = st.selectbox("Add or edit", options=list(options), key="product_edit_selector")
    editing = state.find("products", options[choice]) if options[choice] else None
    suffix = editing.id if editing else "new"

    with st.form(f"product_form_{suffix}", clear_on_submit=editing is None):
        st.markdown("**Edit Product**" if editing else "**Add Product**")
        a1, a2 = st.columns(2)
        name = a1.text_input("Product Name *", value=editing.name if editing else "", placeholder="550W Mono Panel")
        category = a2.text_input("Category", value=editing.category if editing else "", placeholder="Panels")
        b1, b2 = st.columns(2)
        vendor = b1.text_input("Vendor", value=editing.vendor if editing else "")
        unit_cost = b2.number_input(
            "Unit Cost", min_value=0.0, step=100.0, value=float(editing.unit_cost) if editing else 0.0
        )
        c1, c2 = st.columns(2)
        quantity = c1.number_input("Quantity", min_value=0, step=1, value=int(editing.quantity) if editing else 0)
        min_threshold = c2.number_input(
            "Minimum Stock Threshold", min_value=0, step=1, value=int(editing.min_threshold) if editing else 0
        )
        submitted = st.form_submit_button("Save Product")

    if submitted:
        if not name.strip():
            st.error("Product Name is required.")
        else:
            values = {
                "name": name.strip(),
                "category": category.strip(),
                "vendor": vendor.strip(),
                "unit_cost": float(unit_cost),
                "quantity": int(quantity),
                "min_threshold": int(min_threshold),
            }
            try:
                if editing:
                    state.update_product(editing.id, values)
                else:
                    state.add_product(Product(**values))
                st.success(f"Product '{name.strip()}' saved.")
                st.rerun()
            except Exception as exc:
                st.error(f"Could not save product: {exc}")

    low = low_stock_products(state.products)
    if not low.empty:
        st.warning(f"{len(low)} product(s) at or below minimum stock.")
        st.dataframe(
            low[["name", "category", "quantity", "min_threshold", "vendor"]],
            hide_index=True,
            use_container_width=True,
        )

    st.markdown("---")
    f1, f2 = st.columns([2, 1])
    search = f1.text_input("Search products", placeholder="Name or vendor", key="product_search")
    categories = sorted({p.category for p in state.products if p.category})
    category_filter = f2.selectbox("Category", options=[""] + categories, format_func=lambda c: c or "All")
    matches = filter_products(state.products, search, category_filter)
    if not matches:
        st.info("No products found.")
    else:
        view = records_frame(matches, PRODUCT_COLUMNS)
        view["low_stock"] = [p.is_low_stock for p in matches]
        view["stock_value"] = [p.stock_value for p in matches]
        edited = st.data_editor(
            view,
            hide_index=True,
            use_container_width=True,
            disabled=[c for c in view.columns if c != "quantity"],
            key="inventory_quantity_editor",
        )
        before = dict(zip(view["id"], view["quantity"]))
        after = pd.to_numeric(edited["quantity"], errors="coerce").fillna(0).astype(int)
        changed = {
            product_id: int(quantity)
            for product_id, quantity in zip(edited["id"], after)
            if int(quantity) != int(before.get(product_id, quantity))
        }
        s1, s2 = st.columns(2)
        if s1.button("Save stock changes", key="inventory_save_stock_btn", disabled=not changed):
            try:
                state.restock_products(changed)
                st.success(f"Updated stock for {len(changed)} product(s).")
                st.rerun()
            except Exception as exc:
                st.error(f"Could not update stock: {exc}")
        if editing and s2.button(f"Delete '{editing.name}'", key="inventory_delete_btn"):
            try:
                state.delete_product(editing.id)
                st.rerun()
            except Exception as exc:
                st.error(f"Could not delete product: {exc}")

    render_export_buttons(state, "products")


def render_installations(state: AppState) -> None:
    st.subheader("Installations & Tasks")
    st.caption("Schedule installations, maintenance visits and inspections.")

    counts = task_status_counts(state.tasks)
    k1, k2, k3 = st.columns(3)
    with k1:
        render_kpi("Pending", str(counts["pending"]))
    with k2:
        render_kpi("In Progress", str(counts["in-progress"]))
    with k3:
        render_kpi("Completed", str(counts["completed"]))

    options = {"New task": None}
    options.update({f"{t.customer_name} - {t.type.value} ({t.scheduled_date})": t.id for t in state.tasks})
    choice = st.selectbox("Add or edit", options=list(options), key="task_edit_selector")
    editing = state.find("tasks", options[choice]) if options[choice] else None
    suffix = editing.id if editing else "new"

    customer_ids = [c.id for c in state.customers]
    customer_names = {c.id: c.name for c in state.customers}
    if not customer_ids:
        st.info("Add a customer before scheduling tasks.")
    else:
        with st.form(f"task_form_{suffix}", clear_on_submit=editing is None):
            st.markdown("**Edit Task**" if editing else "**Schedule Task**")
            a1, a2 = st.columns(2)
            customer_id = a1.selectbox(
                "Customer *",
                options=customer_ids,
                index=customer_ids.index(editing.customer_id) if editing and editing.customer_id in customer_ids else 0,
                format_func=lambda cid: customer_names.get(cid, cid),
            )
            type_options = list(TASK_TYPE_LABELS)
            task_type = a2.selectbox(
                "Type",
                options=type_options,
                index=type_options.index(editing.type) if editing else 0,
                format_func=TASK_TYPE_LABELS.get,
            )
            b1, b2, b3 = st.columns(3)
            status_options = list(STATUS_LABELS)
            status = b1.selectbox(
                "Status",
                options=status_options,
                index=status_options.index(editing.status) if editing else 0,
                format_func=STATUS_LABELS.get,
            )
            assigned_to = b2.text_input("Assigned To", value=editing.assigned_to if editing else "")
            scheduled_date = b3.date_input(
                "Scheduled Date",
                value=(from_iso(editing.scheduled_date) if editing else None) or date.today(),
            )
            notes = st.text_area("Notes", value=(editing.notes or "") if editing else "")
            submitted = st.form_submit_button("Save Task")

        if submitted:
            values = {
                "customer_id": customer_id,
                "customer_name": customer_names.get(customer_id, ""),
                "type": task_type,
                "status": status,
                "assigned_to": assigned_to.strip(),
                "scheduled_date": to_iso(scheduled_date),
                "notes": notes.strip() or None,
            }
            try:
                if editing:
                    state.update_task(editing.id, values)
                else:
                    state.add_task(Task(**values))
                st.success("Task saved.")
                st.rerun()
            except Exception as exc:
                st.error(f"Could not save task: {exc}")

        if editing and st.button("Delete this task", key="task_delete_btn"):
            try:
                state.delete_task(editing.id)
                st.rerun()
            except Exception as exc:
                st.error(f"Could not delete task: {exc}")

    st.markdown("---")
    f1, f2, f3 = st.columns([2, 1, 1])
    search = f1.text_input("Search tasks", placeholder="Customer or assignee", key="task_search")
    status_filter = f2.selectbox(
        "Status",
        options=[""] + [s.value for s in WorkStatus],
        format_func=lambda s: STATUS_LABELS[WorkStatus(s)] if s else "All",
        key="task_status_filter",
    )
    assignees = sorted({t.assigned_to for t in state.tasks if t.assigned_to})
    assignee_filter = f3.selectbox(
        "Assignee", options=[""] + assignees, format_func=lambda a: a or "All", key="task_assignee_filter"
    )
    matches = filter_tasks(state.tasks, search, status_filter, assignee_filter)
    if not matches:
        st.info("No tasks found.")
    else:
        st.dataframe(
            records_frame(matches, TASK_COLUMNS).drop(columns=["id", "customer_id"]),
            hide_index=True,
            use_container_width=True,
        )

    render_export_buttons(state, "tasks")


def _cell_text(value: object) -> str:
    if value is None or (isinstance(value, float) and pd.isna(value)):
        return ""
    return str(value).strip()


def _line_items_from_editor(state: AppState, rows: pd.DataFrame, product_labels: dict[str, str]) -> list:
    items = []
    for _, row in rows.iterrows():
        label = _cell_text(row.get("product"))
        product_id = product_labels.get(label)
        name = _cell_text(row.get("name"))
        raw_quantity = pd.to_numeric(row.get("quantity"), errors="coerce")
        quantity = 0.0 if pd.isna(raw_quantity) else max(float(raw_quantity), 0.0)
        raw_cost = pd.to_numeric(row.get("unit_cost"), errors="coerce")
        unit_cost = None if pd.isna(raw_cost) or float(raw_cost) <= 0 else float(raw_cost)
        if not product_id and not name:
            continue
        item = price_line_item(state.products, product_id, name=name, quantity=quantity, unit_cost=unit_cost)
        if item is not None:
            items.append(item)
    return items


def render_invoices(state: AppState) -> None:
    st.subheader("Invoices")
    st.caption("Create invoices from catalog products or custom lines, then download them as PDF.")
    profile = load_profile(state)

    if not state.customers:
        st.info("Add a customer before creating invoices.")
    else:
        customer_ids = [c.id for c in state.customers]
        customer_names = {c.id: c.name for c in state.customers}
        product_labels = {f"{p.name} ({money(state, p.unit_cost)})": p.id for p in state.products}

        st.markdown("**New Invoice**")
        a1, a2, a3 = st.columns(3)
        customer_id = a1.selectbox(
            "Customer *",
            options=customer_ids,
            format_func=lambda cid: customer_names.get(cid, cid),
            key="invoice_customer_input",
        )
        installation_date = a2.date_input("Installation Date", value=date.today(), key="invoice_install_date_input")
        taxes = a3.number_input("Tax Amount", min_value=0.0, step=100.0, value=0.0, key="invoice_taxes_input")

        st.caption("Pick a catalog product, or leave Product blank and type a custom line. Blank cost uses the catalog price.")
        rows = st.data_editor(
            pd.DataFrame([{"product": "", "name": "", "quantity": 1.0, "unit_cost": 0.0}]),
            num_rows="dynamic",
            hide_index=True,
            use_container_width=True,
            column_config={
                "product": st.column_config.SelectboxColumn("Product", options=[""] + list(product_labels)),
                "name": st.column_config.TextColumn("Description"),
                "quantity": st.column_config.NumberColumn("Qty", min_value=0.0, step=1.0),
                "unit_cost": st.column_config.NumberColumn("Unit Cost", min_value=0.0, step=100.0),
            },
            key="invoice_items_editor",
        )
        items = _line_items_from_editor(state, rows, product_labels)
        subtotal, final_amount = compute_totals(items, taxes)
        t1, t2, t3 = st.columns(3)
        with t1:
            render_kpi("Subtotal", money(state, subtotal))
        with t2:
            render_kpi("Tax", money(state, taxes))
        with t3:
            render_kpi("Total", money(state, final_amount))

        with st.expander("Company details on this invoice", expanded=False):
            company_address = st.text_input(
                "Company Address", value=profile["company_address"], key="invoice_company_address_input"
            )
            tax_id = st.text_input("GST Number", value=profile["tax_id"], key="invoice_tax_id_input")
            signatory = st.text_input("Authorized Signatory", value="", key="invoice_signatory_input")

        if st.button("Create Invoice", key="invoice_create_btn", disabled=not items):
            try:
                invoice = state.create_invoice(
                    customer_id,
                    items,
                    taxes=float(taxes),
                    installation_date=to_iso(installation_date) or "",
                    company_address=company_address,
                    tax_id=tax_id,
                    signatory=signatory,
                )
                if invoice is None:
                    st.error("Selected customer no longer exists. Refresh data and try again.")
                else:
                    st.session_state["invoice_selected_id"] = invoice.id
                    st.success(f"Invoice {invoice.id} created for {invoice.customer_name}.")
                    st.rerun()
            except Exception as exc:
                st.error(f"Could not create invoice: {exc}")

    st.markdown("---")
    search = st.text_input("Search invoices", placeholder="Customer name or invoice id", key="invoice_search")
    matches = search_invoices(state.invoices, search)
    if not matches:
        st.info("No invoices found.")
        render_export_buttons(state, "invoices")
        return

    view = pd.DataFrame(
        [
            {
                "id": i.id,
                "customer_name": i.customer_name,
                "installation_date": i.installation_date,
                "items": len(i.line_items),
                "subtotal": money(state, i.subtotal),
                "taxes": money(state, i.taxes),
                "final_amount": money(state, i.final_amount),
                "created_at": i.created_at,
            }
            for i in matches
        ]
    )
    st.dataframe(view, hide_index=True, use_container_width=True)

    invoice_ids = [i.id for i in matches]
    default_id = st.session_state.get("invoice_selected_id")
    selected_id = st.selectbox(
        "Invoice",
        options=invoice_ids,
        index=invoice_ids.index(default_id) if default_id in invoice_ids else 0,
        format_func=lambda iid: f"{iid} - {state.find('invoices', iid).customer_name}",
        key="invoice_export_selector",
    )
    invoice = state.find("invoices", selected_id)
    customer = state.find_customer(invoice.customer_id)
    if customer is None:
        st.warning("This invoice's customer was deleted; the bill-to block will be blank.")

    logo = BRAND_LOGO_PATH if BRAND_LOGO_PATH.exists() else None
    d1, d2, d3 = st.columns(3)
    try:
        pdf_bytes = render_invoice_pdf(invoice, customer, profile=profile, logo_path=logo)
        d1.download_button(
            "Download PDF",
            data=pdf_bytes,
            file_name=invoice_pdf_filename(invoice),
            mime="application/pdf",
            key="invoice_pdf_download_btn",
        )
    except Exception as exc:
        d1.error(f"Could not render PDF: {exc}")
    show_preview = d2.toggle("Preview", key="invoice_preview_toggle")
    if d3.button("Delete invoice", key="invoice_delete_btn"):
        try:
            state.delete_invoice(invoice.id)
            st.session_state["invoice_selected_id"] = None
            st.rerun()
        except Exception as exc:
            st.error(f"Could not delete invoice: {exc}")
    if show_preview:
        st.image(render_invoice_png(invoice, customer, profile=profile, logo_path=logo))

    render_export_buttons(state, "invoices")


def render_analytics(state: AppState) -> None:
    st.subheader("Analytics & Reports")
    st.caption("Monitor your solar installation business performance and trends.")

    summary = dashboard_summary(state.customers, state.products, state.tasks, state.invoices)
    month = summary["month"]
    c1, c2, c3, c4 = st.columns(4)
    with c1:
        render_kpi("Total Customers", str(summary["total_customers"]), f"{month['new_customers']} added this month")
    with c2:
        render_kpi("Installations (Month)", str(month["installations"]))
    with c3:
        render_kpi("Total kW Installed", f"{month['total_kw']:.1f} kW")
    with c4:
        render_kpi("Monthly Revenue", money(state, month["revenue"]))

    monthly = monthly_summary(state.customers, state.tasks, state.invoices)
    m1, m2 = st.columns(2)
    with m1:
        fig = px.bar(
            monthly,
            x="month_label",
            y="installations",
            labels={"month_label": "Month", "installations": "Installations"},
            title="Monthly Installations",
        )
        style_plotly(fig)
        st.plotly_chart(fig, use_container_width=True)
    with m2:
        fig = px.line(
            monthly,
            x="month_label",
            y="total_kw",
            markers=True,
            labels={"month_label": "Month", "total_kw": "kW"},
            title="kW Capacity Installed",
        )
        style_plotly(fig)
        st.plotly_chart(fig, use_container_width=True)

    r1, r2 = st.columns(2)
    with r1:
        fig = px.bar(
            monthly,
            x="month_label",
            y="revenue",
            labels={"month_label": "Month", "revenue": "Revenue"},
            title="Monthly Revenue",
        )
        style_plotly(fig)
        st.plotly_chart(fig, use_container_width=True)
    with r2:
        categories = category_rollup(state.products)
        if categories.empty:
            st.markdown("**Inventory Value by Category**")
            st.info("No products yet. Add inventory to see the category breakdown.")
        else:
            fig = px.pie(categories, names="name", values="value", title="Inventory Value by Category")
            style_plotly(fig)
            st.plotly_chart(fig, use_container_width=True)

    st.download_button(
        "Download Monthly Summary (CSV)",
        data=monthly.drop(columns=["start", "end"]).to_csv(index=False).encode("utf-8"),
        file_name="monthly_summary.csv",
        mime="text/csv",
        key="analytics_monthly_csv_btn",
    )


def render_settings(state: AppState) -> None:
    st.subheader("Settings")
    st.caption("Business profile, data overview and backups for internal team use.")

    profile = load_profile(state)
    with st.form("business_profile_form"):
        st.markdown("**Business Profile**")
        business_name = st.text_input("Business Name", value=profile["business_name"])
        company_address = st.text_input("Default Company Address", value=profile["company_address"])
        tax_id = st.text_input("Default GST Number", value=profile["tax_id"])
        contact_line = st.text_input("Contact Line", value=profile["contact_line"])
        support_line = st.text_input("Invoice Footer Support Line", value=profile["support_line"])
        currency = st.text_input("Currency Label", value=profile["currency"])
        saved = st.form_submit_button("Save Profile")
    if saved:
        try:
            for key, value in {
                "business_name": business_name,
                "company_address": company_address,
                "tax_id": tax_id,
                "contact_line": contact_line,
                "support_line": support_line,
                "currency": currency,
            }.items():
                set_profile_setting(state, key, value)
            st.success("Business profile saved.")
        except Exception as exc:
            st.error(f"Could not save profile: {exc}")

    st.markdown("**Data Overview**")
    stored = state.store.counts()
    cols = st.columns(len(COLLECTIONS))
    for col, collection in zip(cols, COLLECTIONS):
        with col:
            render_kpi(f"Total {collection.title()}", str(len(state.collection(collection))), f"{stored[collection]} stored")
    if state.loaded_at:
        st.caption(f"Snapshot loaded at {state.loaded_at}. Use Refresh Data in the sidebar to reload.")

    st.markdown("**Backup**")
    st.caption("Download a complete backup of all CRM data in JSON format.")
    now = datetime.now()
    st.download_button(
        "Download Backup (.json)",
        data=backup_json(state, now=now).encode("utf-8"),
        file_name=backup_filename(now),
        mime="application/json",
        key="settings_backup_download_btn",
    )

    with st.expander("Danger Zone", expanded=False):
        st.warning(
            "Bulk deletion of all CRM data is not available. Delete individual records from their "
            "screens, and download a backup first if you might need to restore."
        )


def main() -> None:
    st.sidebar.markdown(f"### {PAGE_ICON} {APP_TITLE}")
    refresh = st.sidebar.button("Refresh Data", key="refresh_data_btn")

    try:
        state = get_state(reload=refresh)
    except Exception as exc:
        logger.exception("Could not load CRM data")
        st.error(f"Could not load CRM data: {exc}")
        return

    section = st.sidebar.radio("Go to Section", options=SECTIONS, key="nav_section")
    if section == "Dashboard":
        render_dashboard(state)
    elif section == "Customers":
        render_customers(state)
    elif section == "Inventory":
        render_inventory(state)
    elif section == "Installations":
        render_installations(state)
    elif section == "Invoices":
        render_invoices(state)
    elif section == "Analytics":
        render_analytics(state)
    elif section == "Settings":
        render_settings(state)


if __name__ == "__main__":
    main()
