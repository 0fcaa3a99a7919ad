import streamlit as st
import pandas as pd
from datetime import date, timedelta
import calendar as cal_module  # Renombrado para evitar conflicto con variable

from logging_config import get_logger
from client.api_client import ApiClient, ApiError
from client.auth_probe import guard_route, probe
from client.notifications import NotificationCenter
from client.routing import get_route_title, RoutingManager, UserContext
from constants import BOOKING_STATUSES, HOUSEKEEPING_STATUSES, MODULE_PERMISSIONS, ROOM_TYPES

# Logger para este módulo
logger = get_logger(__name__)

# --- 1. CONFIGURACIÓN INICIAL ---
st.set_page_config(page_title="RedBoat Hotel", page_icon="🏨", layout="wide")

# --- 2. CONSTANTES ---
DIAS_SEMANA = ["Mon", "Tue", "Wed", "Thu", "Fri", "Sat", "Sun"]

STATUS_ICONS = {
    "pending": "🟡", "confirmed": "🟢", "checked-in": "🔵", "checked-out": "⚪", "cancelled": "🔴",
}

REPORTS = {"Occupancy": "occupancy", "Revenue": "revenue", "Bookings": "bookings"}


# --- 3. SESIÓN ---
def init_session():
    if "api" not in st.session_state:
        st.session_state.api = ApiClient()
        st.session_state.path = "/"
        st.session_state.center = None
        st.session_state.shown_toasts = set()
        st.session_state.pending_email = ""


def api() -> ApiClient:
    return st.session_state.api


def go(path: str):
    st.session_state.path = path
    st.rerun()


def start_notifications(context: UserContext):
    center = st.session_state.center
    if not context.is_authenticated:
        if center is not None:
            center.stop()
            st.session_state.center = None
        return

    if center is not None and center.stopped:
        # Se detuvo por inactividad: se recrea y el polling recupera el historial
        center.stop()
        center = None
    if center is None:
        center = NotificationCenter(api(), authenticated=True)
        center.start()
        st.session_state.center = center
    center.touch()


def notify(message: str, type: str = "success"):
    center = st.session_state.center
    if center is not None:
        center.notify(message, type)
    else:
        st.toast(message)


def run_action(action, success_message: str = None):
    """Ejecuta una llamada a la API mostrando el error si falla."""
    try:
        result = action()
    except ApiError as e:
        st.error(e.message)
        return None
    if success_message:
        notify(success_message)
    return result


def logout():
    run_action(api().logout)
    start_notifications(UserContext(is_authenticated=False))
    go("/login")


def show_table(rows, columns=None):
    if not rows:
        st.info("Sin datos")
        return
    df = pd.DataFrame(rows)
    if columns:
        df = df[[c for c in columns if c in df.columns]]
    st.dataframe(df, use_container_width=True, hide_index=True)


# --- 4. CALENDARIO NATIVO ---
def render_native_calendar(year: int, month: int, occupancy_map: dict):
    """
    Renderiza un calendario mensual visual con HTML/CSS usando st.components.

    Args:
        year: Año a mostrar
        month: Mes a mostrar (1-12)
        occupancy_map: Dict de ocupación de /calendar/occupancy
    """
    import streamlit.components.v1 as components

    today_str = date.today().isoformat()
    month_matrix = cal_module.monthcalendar(year, month)

    css = """
    <style>
        .calendar-container { font-family: -apple-system, 'Segoe UI', Roboto, sans-serif; max-width: 500px; margin: 0 auto; }
        .calendar-header, .calendar-grid { display: grid; grid-template-columns: repeat(7, 1fr); gap: 3px; }
        .calendar-header { text-align: center; font-weight: 600; color: #888; font-size: 11px; padding: 8px 0; }
        .day-cell { height: 36px; display: flex; align-items: center; justify-content: center; border-radius: 6px; font-size: 13px; }
        .status-free { background: #2a2a2a; color: #aaa; border: 1px solid #444; }
        .status-medium { background: #2d6a4f; color: #95d5b2; border: 1px solid #40916c; }
        .status-high { background: #991b1b; color: #fca5a5; border: 1px solid #dc2626; }
        .day-today { box-shadow: 0 0 0 2px #3b82f6; font-weight: bold; }
    </style>
    """

    header_html = '<div class="calendar-header">' + "".join(f"<span>{d}</span>" for d in DIAS_SEMANA) + "</div>"

    grid_html = '<div class="calendar-grid">'
    for week in month_matrix:
        for day in week:
            if day == 0:
                grid_html += '<div class="day-cell"></div>'
                continue
            day_key = date(year, month, day).isoformat()
            day_data = occupancy_map.get(day_key, {"status": "free", "count": 0})
            today_class = "day-today" if day_key == today_str else ""
            tooltip = f"{day_data['count']} booking(s)" if day_data["count"] > 0 else "Free"
            grid_html += f'<div class="day-cell status-{day_data["status"]} {today_class}" title="{tooltip}">{day}</div>'
    grid_html += "</div>"

    components.html(f'<div class="calendar-container">{css}{header_html}{grid_html}</div>',
                    height=60 + len(month_matrix) * 40)


def render_day_bookings(selected_date: date, occupancy_map: dict):
    day_data = occupancy_map.get(selected_date.isoformat(), {"count": 0, "ids": [], "guests": []})
    if day_data["count"] == 0:
        st.success(f"✅ No bookings on {selected_date:%d/%m/%Y}")
        return
    st.markdown(f"### 📅 Bookings on {selected_date:%d/%m/%Y}")
    for booking_id, guest in zip(day_data["ids"], day_data["guests"]):
        st.write(f"🏠 **{guest}** · booking #{booking_id}")


def render_calendar_page(admin: bool):
    st.title("📆 Calendar")
    selected = st.date_input("Month", value=date.today())
    occupancy = run_action(lambda: api().calendar_occupancy(selected.year, selected.month)) if admin else None

    if occupancy is None:
        # Usuarios: sus propias reservas sobre el mes
        occupancy = {}
        for booking in run_action(api().my_bookings) or []:
            if booking["status"] not in ("confirmed", "checked-in"):
                continue
            day = date.fromisoformat(booking["checkInDate"])
            while day < date.fromisoformat(booking["checkOutDate"]):
                entry = occupancy.setdefault(day.isoformat(), {"count": 0, "status": "medium", "ids": [], "guests": []})
                entry["count"] += 1
                entry["ids"].append(booking["id"])
                entry["guests"].append(booking["guestName"])
                day += timedelta(days=1)

    render_native_calendar(selected.year, selected.month, occupancy)
    render_day_bookings(selected, occupancy)

    if admin:
        with st.expander("Events"):
            show_table(run_action(lambda: api().calendar_events(selected.year, selected.month)),
                       ["title", "start", "end", "resourceId"])


# ==========================================
# PÁGINAS PÚBLICAS
# ==========================================

def page_welcome():
    st.title("🏨 RedBoat Hotel")
    st.write("Hotel Management System")
    col1, col2 = st.columns(2)
    if col1.button("Login", type="primary"):
        go("/login")
    if col2.button("Browse rooms"):
        go("/rooms")


def page_about():
    st.title("About RedBoat")
    st.write("RedBoat Hotel: comfortable rooms, friendly staff and an easy online booking experience.")


def page_contact():
    st.title("Contact Us")
    st.write("📞 Front desk available 24/7 · ✉️ reservations@redboat.local")


def page_public_rooms():
    st.title("🛏️ Rooms")
    rooms = run_action(api().list_rooms) or []
    for room in rooms:
        with st.container(border=True):
            st.markdown(f"**{room['roomType']} · Room {room['roomNumber']}** ({room['capacity']} guests)")
            st.write(f"₱{room['price']:,.2f} / night · {', '.join(room['amenities'])}")
            if room.get("description"):
                st.caption(room["description"])


def page_login():
    st.markdown("## 🏨 RedBoat Hotel - Login")
    with st.form("login_form"):
        email = st.text_input("Email")
        password = st.text_input("Password", type="password")
        if st.form_submit_button("Login", type="primary"):
            user = run_action(lambda: api().login(email, password))
            if user:
                logger.info(f"Login dashboard: {email}")
                if not user.get("username"):
                    go("/choose-username")
                go("/admin" if user["role"] != "user" else "/dashboard")
    col1, col2 = st.columns(2)
    if col1.button("Create account"):
        go("/signup")
    if col2.button("Forgot password?"):
        go("/forgot-password")


def page_signup():
    st.title("Sign Up")
    with st.form("signup_form"):
        col1, col2 = st.columns(2)
        first_name = col1.text_input("First name")
        last_name = col2.text_input("Last name")
        username = st.text_input("Username")
        email = st.text_input("Email")
        password = st.text_input("Password", type="password")
        phone = st.text_input("Phone number")
        address = st.text_input("Address")
        if st.form_submit_button("Sign up", type="primary"):
            payload = {
                "firstName": first_name, "lastName": last_name, "username": username,
                "email": email, "password": password, "phoneNumber": phone, "address": address,
            }
            if run_action(lambda: api().signup(payload), "Verification code sent"):
                st.session_state.pending_email = email
                go("/verify-code")


def page_verify_code():
    st.title("Verify your email")
    email = st.text_input("Email", value=st.session_state.pending_email)
    code = st.text_input("6-digit code", max_chars=6)
    col1, col2 = st.columns(2)
    if col1.button("Verify", type="primary"):
        if run_action(lambda: api().verify_email(email, code), "Email verified"):
            go("/dashboard")
    if col2.button("Resend code"):
        run_action(lambda: api().resend_code(email), "Code sent")


def page_forgot_password():
    st.title("Forgot Password")
    email = st.text_input("Email")
    if st.button("Send reset code", type="primary"):
        if run_action(lambda: api().forgot_password(email), "Reset code sent"):
            st.session_state.pending_email = email
            go("/reset-password")


def page_reset_password():
    st.title("Reset Password")
    email = st.text_input("Email", value=st.session_state.pending_email)
    code = st.text_input("Code", max_chars=6)
    new_password = st.text_input("New password", type="password")
    if st.button("Update password", type="primary"):
        if run_action(lambda: api().reset_password(email, code, new_password), "Password updated"):
            go("/login")


def page_choose_username():
    st.title("Choose a username")
    username = st.text_input("Username")
    if st.button("Save", type="primary"):
        if run_action(lambda: api().set_username(username), "Username saved"):
            go("/dashboard")


def page_checkout_success():
    st.title("✅ Payment Success")
    session_id = st.query_params.get("session_id")
    if session_id:
        booking = run_action(lambda: api().confirm_checkout_session(session_id))
        if booking:
            st.success(f"Booking #{booking['id']} is {booking['paymentStatus']}")


def page_checkout_cancel():
    st.title("Payment Canceled")
    st.info("Your booking is still pending. You can pay later from My Bookings.")


def page_blocked():
    st.title("🚫 Account Blocked")
    st.error("Your account has been blocked. Please contact support.")


# ==========================================
# PÁGINAS DE USUARIO
# ==========================================

def page_user_dashboard():
    me = run_action(api().me) or {}
    st.title(f"👋 Welcome, {me.get('name') or me.get('email', '')}")
    bookings = run_action(api().my_bookings) or []
    upcoming = [b for b in bookings if b["status"] in ("pending", "confirmed")]
    col1, col2, col3 = st.columns(3)
    col1.metric("Bookings", len(bookings))
    col2.metric("Upcoming", len(upcoming))
    col3.metric("Unread notifications", st.session_state.center.unread if st.session_state.center else 0)
    st.subheader("Upcoming stays")
    show_table(upcoming, ["id", "checkInDate", "checkOutDate", "status", "totalAmount", "paymentStatus"])


def page_user_profile():
    st.title("👤 Profile")
    profile = run_action(api().get_profile) or {}
    with st.form("profile_form"):
        col1, col2 = st.columns(2)
        first_name = col1.text_input("First name", value=profile.get("firstName", ""))
        last_name = col2.text_input("Last name", value=profile.get("lastName", ""))
        username = st.text_input("Username", value=profile.get("username") or "")
        phone = st.text_input("Phone number", value=profile.get("phoneNumber", ""))
        address = st.text_input("Address", value=profile.get("address", ""))
        if st.form_submit_button("Save", type="primary"):
            run_action(lambda: api().update_profile({
                "firstName": first_name, "lastName": last_name, "username": username,
                "phoneNumber": phone, "address": address,
            }), "Profile updated")


def page_user_settings():
    st.title("⚙️ Settings")
    profile = run_action(api().get_profile) or {}
    email_notifications = st.toggle("Email notifications", value=profile.get("emailNotifications", True))
    if email_notifications != profile.get("emailNotifications", True):
        run_action(lambda: api().update_profile({"emailNotifications": email_notifications}), "Preferences saved")

    st.subheader("Change password")
    with st.form("password_form", clear_on_submit=True):
        current = st.text_input("Current password", type="password")
        new = st.text_input("New password", type="password")
        if st.form_submit_button("Change password"):
            run_action(lambda: api().change_password(current, new), "Password updated")


def page_user_rooms():
    st.title("🛏️ Book a Room")
    rooms = run_action(api().list_rooms) or []
    if not rooms:
        return
    labels = {f"{r['roomNumber']} · {r['roomType']} · ₱{r['price']:,.0f}": r for r in rooms}
    with st.form("booking_form"):
        room = labels[st.selectbox("Room", options=list(labels))]
        col1, col2 = st.columns(2)
        check_in = col1.date_input("Check-in", value=date.today() + timedelta(days=1))
        check_out = col2.date_input("Check-out", value=date.today() + timedelta(days=2))
        guests = st.number_input("Guests", min_value=1, value=1)
        guest_name = st.text_input("Guest name")
        contact = st.text_input("Contact number")
        requests = st.text_area("Special requests")
        if st.form_submit_button("Book", type="primary"):
            booking = run_action(lambda: api().create_booking({
                "roomId": room["id"], "checkInDate": check_in.isoformat(), "checkOutDate": check_out.isoformat(),
                "numberOfGuests": int(guests), "guestName": guest_name, "contactNumber": contact,
                "specialRequests": requests,
            }), "Booking created")
            if booking:
                st.success(f"Booking #{booking['id']}: ₱{booking['totalAmount']:,.2f}")

    with st.expander("⭐ Reviews"):
        summary = run_action(lambda: api().room_reviews(room["id"])) or {}
        st.write(f"Average {summary.get('averageRating', 0):.1f} ({summary.get('count', 0)} reviews)")
        show_table(summary.get("items"), ["userName", "rating", "comment", "createdAt"])
        rating = st.slider("Your rating", 1, 5, 5)
        comment = st.text_input("Comment", key="review_comment")
        if st.button("Submit review"):
            run_action(lambda: api().review_room(room["id"], rating, comment), "Review saved")


def page_user_bookings():
    st.title("📋 My Bookings")
    bookings = run_action(api().my_bookings) or []
    if not bookings:
        st.info("No bookings yet")
    for booking in bookings:
        icon = STATUS_ICONS.get(booking["status"], "")
        with st.expander(f"{icon} #{booking['id']} · {booking['checkInDate']} → {booking['checkOutDate']}"):
            st.write(f"**Status:** {booking['status']} · **Payment:** {booking['paymentStatus']}")
            st.write(f"**Total:** ₱{booking['totalAmount']:,.2f}")
            if booking["paymentStatus"] == "pending" and booking["status"] != "cancelled":
                if st.button("💳 Pay online", key=f"pay_{booking['id']}"):
                    session = run_action(lambda: api().create_checkout_session(booking["id"]))
                    if session and session.get("url"):
                        st.link_button("Continue to checkout", session["url"])
            if booking["status"] in ("pending", "confirmed") and not booking["cancellationRequested"]:
                reason = st.text_input("Reason", key=f"reason_{booking['id']}")
                if st.button("❌ Request cancellation", key=f"cancel_{booking['id']}"):
                    run_action(lambda: api().request_cancellation(booking["id"], reason), "Cancellation requested")
                    st.rerun()


def page_user_feedback():
    st.title("💬 Feedback")
    with st.form("feedback_form", clear_on_submit=True):
        rating = st.slider("Rating", 1, 5, 5)
        comment = st.text_area("Comment")
        if st.form_submit_button("Send", type="primary"):
            run_action(lambda: api().send_feedback(rating, comment), "Thank you for your feedback!")
    show_table(run_action(api().my_feedback), ["rating", "comment", "createdAt"])


# ==========================================
# PÁGINAS DE ADMIN
# ==========================================

def page_admin_dashboard():
    st.title("📊 Admin Dashboard")
    report = run_action(lambda: api().report("dashboard"))
    if not report:
        return
    overview = report["overview"]
    col1, col2, col3, col4 = st.columns(4)
    col1.metric("🏠 Rooms", overview["totalRooms"])
    col2.metric("🛏️ Occupied today", overview["occupiedToday"])
    col3.metric("🧹 Need cleaning", overview["roomsNeedingCleaning"])
    col4.metric("💵 Revenue (month)", f"₱{overview['monthlyRevenue']:,.0f}")
    col1, col2 = st.columns(2)
    col1.metric("🛎️ Check-ins today", report["today"]["checkIns"])
    col2.metric("🚪 Check-outs today", report["today"]["checkOuts"])
    st.subheader("Recent bookings")
    show_table(report["recentBookings"])


def page_admin_users():
    st.title("👥 User Management")
    users = run_action(api().list_users) or []
    roles = [r["name"] for r in run_action(api().list_roles) or []]
    show_table(users, ["id", "username", "email", "role", "isBlocked", "createdAt"])

    if not users:
        return
    labels = {f"#{u['id']} {u['email']}": u for u in users}
    user = labels[st.selectbox("User", options=list(labels))]
    col1, col2, col3 = st.columns(3)
    if user["isBlocked"]:
        if col1.button("Unblock"):
            run_action(lambda: api().unblock_user(user["id"]), "User unblocked")
            st.rerun()
    elif col1.button("Block"):
        run_action(lambda: api().block_user(user["id"]), "User blocked")
        st.rerun()

    role = col2.selectbox("Role", options=roles, index=roles.index(user["role"]) if user["role"] in roles else 0)
    if col3.button("Assign role"):
        run_action(lambda: api().assign_role(user["id"], role), "Role updated")
        st.rerun()

    with st.expander("Admin permissions (superadmin)"):
        current = user.get("adminPermissions") or {}
        flags = {key: st.checkbox(key, value=current.get(key, True), key=f"perm_{key}") for key in MODULE_PERMISSIONS}
        if st.button("Save permissions"):
            run_action(lambda: api().update_admin_permissions(user["id"], flags), "Permissions updated")

    with st.expander("Roles"):
        show_table(run_action(api().list_roles), ["id", "name", "displayName", "isSystem", "permissions"])
        with st.form("role_form", clear_on_submit=True):
            name = st.text_input("Name")
            display = st.text_input("Display name")
            if st.form_submit_button("Create role"):
                run_action(lambda: api().create_role({"name": name, "displayName": display}), "Role created")


def page_admin_rooms():
    st.title("🏠 Room Management")
    rooms = run_action(api().list_all_rooms) or []
    show_table(rooms, ["id", "roomNumber", "roomType", "price", "capacity", "isAvailable", "housekeepingStatus"])
    if not rooms and st.button("Create sample rooms"):
        run_action(api().seed_sample_rooms, "Sample rooms created")
        st.rerun()

    with st.form("room_form", clear_on_submit=True):
        st.subheader("➕ New room")
        col1, col2 = st.columns(2)
        number = col1.text_input("Room number")
        room_type = col2.selectbox("Type", options=ROOM_TYPES)
        price = col1.number_input("Price", min_value=1.0, value=2500.0)
        capacity = col2.number_input("Capacity", min_value=1, value=2)
        amenities = st.text_input("Amenities (comma separated)")
        if st.form_submit_button("Create", type="primary"):
            run_action(lambda: api().create_room({
                "roomNumber": number, "roomType": room_type, "price": price, "capacity": int(capacity),
                "amenities": [a.strip() for a in amenities.split(",") if a.strip()],
            }), "Room created")

    if rooms:
        labels = {r["roomNumber"]: r for r in rooms}
        room = labels[st.selectbox("Room", options=list(labels))]
        col1, col2 = st.columns(2)
        if col1.button("Toggle availability"):
            run_action(lambda: api().update_room(room["id"], {"isAvailable": not room["isAvailable"]}), "Room updated")
            st.rerun()
        if col2.button("🗑️ Delete"):
            run_action(lambda: api().delete_room(room["id"]), "Room deleted")
            st.rerun()


def page_admin_bookings():
    st.title("📋 Bookings")
    bookings = run_action(api().list_bookings) or []
    status_filter = st.multiselect("Status", options=BOOKING_STATUSES)
    if status_filter:
        bookings = [b for b in bookings if b["status"] in status_filter]
    show_table(bookings, ["id", "guestName", "checkInDate", "checkOutDate", "status", "paymentStatus",
                          "totalAmount", "cancellationRequested"])
    if not bookings:
        return

    labels = {f"#{b['id']} {b['guestName']} ({b['status']})": b for b in bookings}
    booking = labels[st.selectbox("Booking", options=list(labels))]
    notes = st.text_input("Notes")
    charges = st.number_input("Additional charges", min_value=0.0, value=0.0)
    col1, col2, col3, col4 = st.columns(4)
    if col1.button("✅ Confirm"):
        run_action(lambda: api().update_booking_status(booking["id"], "confirmed", notes), "Booking confirmed")
    if col2.button("🛎️ Check in"):
        run_action(lambda: api().check_in(booking["id"], notes, charges), "Guest checked in")
    if col3.button("🚪 Check out"):
        result = run_action(lambda: api().check_out(booking["id"], notes, charges), "Guest checked out")
        if result:
            st.json(result["summary"])
    if col4.button("💵 Mark paid"):
        run_action(lambda: api().update_payment(booking["id"], "paid", "cash"), "Payment recorded")

    if booking["cancellationRequested"]:
        st.warning(f"Cancellation requested: {booking.get('cancellationReason') or '-'}")
        col1, col2 = st.columns(2)
        if col1.button("Approve cancellation"):
            run_action(lambda: api().approve_cancellation(booking["id"]), "Cancellation approved")
        if col2.button("Decline cancellation"):
            run_action(lambda: api().decline_cancellation(booking["id"], notes), "Cancellation declined")


def page_admin_housekeeping():
    st.title("🧹 Housekeeping")
    overview = run_action(api().housekeeping) or {"rooms": [], "summary": {}}
    cols = st.columns(len(HOUSEKEEPING_STATUSES))
    for col, status in zip(cols, HOUSEKEEPING_STATUSES):
        col.metric(status, overview["summary"].get(status, 0))
    for room in overview["rooms"]:
        col1, col2 = st.columns([3, 2])
        col1.write(f"**{room['roomNumber']}** · {room['roomType']}")
        status = col2.selectbox("Status", options=HOUSEKEEPING_STATUSES, key=f"hk_{room['id']}",
                                index=HOUSEKEEPING_STATUSES.index(room["housekeepingStatus"]),
                                label_visibility="collapsed")
        if status != room["housekeepingStatus"]:
            run_action(lambda: api().update_housekeeping(room["id"], status), f"Room {room['roomNumber']}: {status}")


def page_admin_reports():
    st.title("📈 Reports")
    col1, col2, col3 = st.columns(3)
    name = col1.selectbox("Report", options=list(REPORTS))
    start = col2.date_input("From", value=date.today() - timedelta(days=30))
    end = col3.date_input("To", value=date.today())
    report = run_action(lambda: api().report(REPORTS[name], start, end))
    if not report:
        return
    summary = {k: v for k, v in report["summary"].items() if k != "period"}
    for col, (key, value) in zip(st.columns(len(summary)), summary.items()):
        col.metric(key, value)

    if name == "Occupancy":
        daily = pd.DataFrame(report["dailyOccupancy"])
        if not daily.empty:
            st.line_chart(daily.set_index("date")["occupancyRate"])
        show_table(report["roomTypeBreakdown"])
    elif name == "Revenue":
        daily = pd.DataFrame(report["dailyRevenue"])
        if not daily.empty:
            st.bar_chart(daily.set_index(daily.columns[0]))
        show_table(report["topCustomers"])
    else:
        st.bar_chart(pd.Series(report["roomTypePopularity"], dtype=float))
        st.json(report["guestStats"])


def page_admin_activity():
    st.title("🗂️ Activity Logs")
    col1, col2, col3 = st.columns(3)
    query = col1.text_input("Search")
    date_from = col2.date_input("From", value=None)
    date_to = col3.date_input("To", value=None)
    page = st.number_input("Page", min_value=1, value=1)
    result = run_action(lambda: api().activity_logs(int(page), 20, query or None, date_from, date_to))
    if result:
        show_table(result["data"], ["createdAt", "actorEmail", "action", "resource", "resourceId", "status", "ip"])
        st.caption(f"Page {result['pagination']['page']} of {result['pagination']['pages']}")


def page_admin_settings():
    st.title("⚙️ Settings")
    page_user_settings()


def page_admin_backup():
    st.title("💾 Backup & Restore")
    if st.button("Create backup", type="primary"):
        run_action(api().create_backup, "Backup created successfully")

    backups = run_action(api().list_backups) or []
    for backup in backups:
        col1, col2, col3 = st.columns([3, 1, 1])
        col1.write(f"**{backup['filename']}** · {backup['size'] / 1024:.1f} KB")
        if col2.button("Restore", key=f"restore_{backup['filename']}"):
            run_action(lambda: api().restore_backup(backup["filename"]), "Database restored successfully")
        if col3.button("Delete", key=f"delete_{backup['filename']}"):
            run_action(lambda: api().delete_backup(backup["filename"]), "Backup deleted successfully")
            st.rerun()

    uploaded = st.file_uploader("Restore from file", type=["zip"])
    if uploaded is not None and st.button("Upload and restore"):
        run_action(lambda: api().upload_backup(uploaded.name, uploaded.getvalue()), "Database restored successfully")


# ==========================================
# REGISTRO DE PÁGINAS
# ==========================================

PAGES = {
    "/": (page_welcome, None),
    "/about": (page_about, None),
    "/rooms": (page_public_rooms, None),
    "/contact": (page_contact, None),
    "/login": (page_login, None),
    "/signup": (page_signup, None),
    "/forgot-password": (page_forgot_password, None),
    "/verify-code": (page_verify_code, None),
    "/reset-password": (page_reset_password, None),
    "/choose-username": (page_choose_username, None),
    "/checkout/success": (page_checkout_success, None),
    "/checkout/cancel": (page_checkout_cancel, None),
    "/blocked": (page_blocked, None),
    "/dashboard": (page_user_dashboard, "user"),
    "/user/profile": (page_user_profile, "user"),
    "/user/bookings": (page_user_bookings, "user"),
    "/user/rooms": (page_user_rooms, "user"),
    "/user/calendar": (lambda: render_calendar_page(admin=False), "user"),
    "/user/feedback": (page_user_feedback, "user"),
    "/user/settings": (page_user_settings, "user"),
    "/admin": (page_admin_dashboard, "admin"),
    "/admin/user-management": (page_admin_users, "admin"),
    "/admin/room-management": (page_admin_rooms, "admin"),
    "/admin/bookings": (page_admin_bookings, "admin"),
    "/admin/calendar": (lambda: render_calendar_page(admin=True), "admin"),
    "/admin/housekeeping": (page_admin_housekeeping, "admin"),
    "/admin/reports": (page_admin_reports, "admin"),
    "/admin/activity-logs": (page_admin_activity, "admin"),
    "/admin/settings": (page_admin_settings, "admin"),
    "/admin/backup": (page_admin_backup, "admin"),
}


def render_sidebar(router: RoutingManager, context: UserContext, path: str):
    with st.sidebar:
        st.markdown("## 🏨 RedBoat")
        crumbs = router.get_breadcrumbs(path)
        if crumbs:
            st.caption(" › ".join(route.title for route in crumbs))

        for route in router.get_navigation_routes():
            if st.button(route.title, key=f"nav_{route.path}", use_container_width=True,
                         type="primary" if route.path == path else "secondary"):
                go(route.path)

        center = st.session_state.center
        if center is not None:
            st.divider()
            with st.expander(f"🔔 Notifications ({center.unread})"):
                for item in center.history[:20]:
                    st.write(("🔹 " if not item.is_read else "") + item.message)
                if st.button("Mark all read"):
                    center.mark_all_read()
                    st.rerun()

        if context.is_authenticated:
            st.divider()
            st.write(f"👤 **{context.role}**")
            if st.button("Logout"):
                logout()


def show_toasts():
    center = st.session_state.center
    if center is None:
        return
    items = center.items
    for item in items:
        if item.id not in st.session_state.shown_toasts:
            st.session_state.shown_toasts.add(item.id)
            st.toast(item.message, icon={"success": "✅", "error": "❌", "warning": "⚠️"}.get(item.type, "ℹ️"))
    # Los toasts ya expirados no vuelven a aparecer
    st.session_state.shown_toasts &= {item.id for item in items}


# --- 5. EJECUCIÓN PRINCIPAL ---

init_session()

# A. Auth probe: cada render pregunta a /me
context = probe(api())
# Un Routing Manager por sesión de navegador
st.session_state.router = RoutingManager.for_context(context)
start_notifications(context)

# B. Route guard
current_path = st.session_state.path
render, required_role = PAGES.get(current_path, (None, None))
decision = guard_route(current_path, required_role, context)
if not decision.can_access or render is None:
    logger.debug(f"Redirect {current_path} -> {decision.redirect_to}: {decision.reason}")
    go(decision.redirect_to or "/")

# C. Render
render_sidebar(st.session_state.router, context, current_path)
show_toasts()
logger.debug(f"Render {current_path} ({get_route_title(current_path)})")
render()
