"""
RedBoat Hotel - Reportes
========================

Agregados de ocupación, ingresos y reservas calculados con pandas sobre
las reservas del periodo. Todas las funciones devuelven dicts listos para
JSON (claves camelCase, tipos nativos de Python).

Periodo por defecto: últimos 30 días hasta hoy. El filtro del periodo se
aplica sobre la fecha de creación de la reserva.
"""

from datetime import date, datetime, time, timedelta
from typing import Dict, Optional, Tuple

import pandas as pd
from sqlalchemy.orm import Session

from constants import ACTIVE_BOOKING_STATUSES, BOOKING_STATUSES, PAYMENT_STATUSES
from database import Booking, Room, User
from errors import ValidationFailed
from logging_config import get_logger

logger = get_logger(__name__)

DEFAULT_PERIOD_DAYS = 30
REVENUE_STATUSES = ("confirmed", "checked-in", "checked-out")
TOP_CUSTOMERS = 10
WEEKDAYS = ("Monday", "Tuesday", "Wednesday", "Thursday", "Friday", "Saturday", "Sunday")

BOOKING_COLUMNS = [
    "id", "user_id", "room_id", "room_number", "room_type", "customer_name", "customer_email",
    "check_in", "check_out", "created_at", "payment_date", "status", "payment_status", "total_amount",
]


# ==========================================
# HELPERS
# ==========================================

def resolve_period(start_date: Optional[date], end_date: Optional[date],
                   today: Optional[date] = None) -> Tuple[date, date, int]:
    """(inicio, fin, días). Sin fechas: los últimos 30 días."""
    today = today or date.today()
    start = start_date or today - timedelta(days=DEFAULT_PERIOD_DAYS)
    end = end_date or today
    if end < start:
        raise ValidationFailed("End date must be after start date")
    days = (end - start).days if start_date and end_date else DEFAULT_PERIOD_DAYS
    return start, end, days


def _period_dict(start: date, end: date, days: Optional[int] = None) -> Dict:
    period = {"startDate": start.isoformat(), "endDate": end.isoformat()}
    if days is not None:
        period["days"] = days
    return period


def bookings_frame(db: Session, statuses=None) -> pd.DataFrame:
    """Reservas con datos de habitación y cliente en un DataFrame."""
    query = db.query(Booking, Room, User).join(Room, Booking.room_id == Room.id)\
        .join(User, Booking.user_id == User.id)
    if statuses:
        query = query.filter(Booking.status.in_(statuses))

    rows = [
        (
            b.id, b.user_id, b.room_id, r.room_number, r.room_type, u.full_name, u.email,
            b.check_in_date, b.check_out_date, b.created_at, b.payment_date,
            b.status, b.payment_status, b.total_amount or 0.0,
        )
        for b, r, u in query.all()
    ]
    df = pd.DataFrame(rows, columns=BOOKING_COLUMNS)
    for column in ("check_in", "check_out", "created_at", "payment_date"):
        df[column] = pd.to_datetime(df[column])
    df["total_amount"] = df["total_amount"].astype(float)
    df["nights"] = (df["check_out"] - df["check_in"]).dt.days
    return df


def _in_period(df: pd.DataFrame, start: date, end: date) -> pd.DataFrame:
    lower = pd.Timestamp(datetime.combine(start, time.min))
    upper = pd.Timestamp(datetime.combine(end + timedelta(days=1), time.min))
    return df[(df["created_at"] >= lower) & (df["created_at"] < upper)]


def _days(start: date, end: date):
    return pd.date_range(start=start, end=end, freq="D")


# ==========================================
# REPORTES
# ==========================================

def occupancy_report(db: Session, start_date: Optional[date] = None,
                     end_date: Optional[date] = None) -> Dict:
    start, end, days_in_period = resolve_period(start_date, end_date)
    total_rooms = db.query(Room).filter(Room.is_available.is_(True)).count()

    all_bookings = bookings_frame(db, REVENUE_STATUSES)
    period = _in_period(all_bookings, start, end)

    total_room_nights = int(period["nights"].sum())
    possible = total_rooms * days_in_period
    occupancy_rate = (total_room_nights / possible * 100) if possible > 0 else 0.0

    by_type = period.groupby("room_type").agg(bookings=("id", "count"), revenue=("total_amount", "sum"))
    room_type_breakdown = {
        room_type: {"bookings": int(row.bookings), "revenue": float(row.revenue)}
        for room_type, row in by_type.iterrows()
    }

    daily = []
    for day in _days(start, end):
        day_end = day + pd.Timedelta(days=1)
        overlapping = all_bookings[(all_bookings["check_in"] < day_end) & (all_bookings["check_out"] > day)]
        occupied = int(overlapping["room_id"].nunique())
        daily.append({
            "date": day.date().isoformat(),
            "occupiedRooms": occupied,
            "totalRooms": total_rooms,
            "occupancyRate": (occupied / total_rooms * 100) if total_rooms > 0 else 0.0,
        })

    logger.info(f"occupancy_report {start}..{end}: {len(period)} reservas, {occupancy_rate:.2f}%")
    return {
        "summary": {
            "totalRooms": total_rooms,
            "totalBookings": int(len(period)),
            "totalRoomNights": total_room_nights,
            "occupancyRate": round(occupancy_rate, 2),
            "period": _period_dict(start, end, days_in_period),
        },
        "roomTypeBreakdown": room_type_breakdown,
        "dailyOccupancy": daily,
    }


def revenue_report(db: Session, start_date: Optional[date] = None,
                   end_date: Optional[date] = None) -> Dict:
    start, end, _ = resolve_period(start_date, end_date)
    period = _in_period(bookings_frame(db, REVENUE_STATUSES), start, end)

    total_revenue = float(period["total_amount"].sum())
    total_bookings = int(len(period))
    average = total_revenue / total_bookings if total_bookings else 0.0

    by_type = period.groupby("room_type").agg(revenue=("total_amount", "sum"), bookings=("id", "count"))
    revenue_by_room_type = {
        room_type: {"revenue": float(row.revenue), "bookings": int(row.bookings)}
        for room_type, row in by_type.iterrows()
    }

    payment_counts = period["payment_status"].value_counts()
    payment_breakdown = {status: int(payment_counts.get(status, 0)) for status in PAYMENT_STATUSES}

    created_day = period["created_at"].dt.normalize()
    per_day = period.groupby(created_day).agg(revenue=("total_amount", "sum"), bookings=("id", "count"))
    daily = []
    for day in _days(start, end):
        if day in per_day.index:
            revenue, bookings = float(per_day.loc[day, "revenue"]), int(per_day.loc[day, "bookings"])
        else:
            revenue, bookings = 0.0, 0
        daily.append({"date": day.date().isoformat(), "revenue": revenue, "bookings": bookings})

    customers = period.groupby("user_id").agg(
        name=("customer_name", "first"),
        email=("customer_email", "first"),
        totalSpent=("total_amount", "sum"),
        bookings=("id", "count"),
    ).sort_values("totalSpent", ascending=False).head(TOP_CUSTOMERS)
    top_customers = [
        {"name": row.name, "email": row.email, "totalSpent": float(row.totalSpent), "bookings": int(row.bookings)}
        for row in customers.itertuples(index=False)
    ]

    return {
        "summary": {
            "totalRevenue": total_revenue,
            "totalBookings": total_bookings,
            "averageBookingValue": round(average, 2),
            "period": _period_dict(start, end),
        },
        "revenueByRoomType": revenue_by_room_type,
        "paymentStatusBreakdown": payment_breakdown,
        "dailyRevenue": daily,
        "topCustomers": top_customers,
    }


def booking_analytics(db: Session, start_date: Optional[date] = None,
                      end_date: Optional[date] = None) -> Dict:
    start, end, _ = resolve_period(start_date, end_date)
    period = _in_period(bookings_frame(db), start, end)

    status_counts = period["status"].value_counts()
    status_breakdown = {status: int(status_counts.get(status, 0)) for status in BOOKING_STATUSES}

    created_day = period["created_at"].dt.normalize()
    trends = []
    for day in _days(start, end):
        day_rows = period[created_day == day]
        counts = day_rows["status"].value_counts()
        entry = {"date": day.date().isoformat(), "totalBookings": int(len(day_rows))}
        entry.update({status: int(counts.get(status, 0)) for status in BOOKING_STATUSES})
        trends.append(entry)

    average_duration = float(period["nights"].mean()) if len(period) else 0.0
    lead_days = (period["check_in"] - created_day).dt.days
    average_lead_time = float(lead_days.mean()) if len(period) else 0.0

    stay_counts = period["nights"].value_counts().sort_index()
    length_of_stay = {str(int(nights)): int(count) for nights, count in stay_counts.items()}

    weekday_counts = period["check_in"].dt.dayofweek.value_counts()
    by_weekday = {name: int(weekday_counts.get(i, 0)) for i, name in enumerate(WEEKDAYS)}

    popularity = period["room_type"].value_counts()
    per_guest = period["user_id"].value_counts()

    return {
        "summary": {
            "totalBookings": int(len(period)),
            "averageDuration": round(average_duration, 2),
            "averageLeadTimeDays": round(average_lead_time, 2),
            "period": _period_dict(start, end),
        },
        "statusBreakdown": status_breakdown,
        "bookingTrends": trends,
        "lengthOfStay": length_of_stay,
        "checkInsByWeekday": by_weekday,
        "roomTypePopularity": {room_type: int(count) for room_type, count in popularity.items()},
        "guestStats": {
            "totalGuests": int(per_guest.size),
            "repeatGuests": int((per_guest > 1).sum()),
            "newGuests": int((per_guest == 1).sum()),
        },
    }


def dashboard_report(db: Session, today: Optional[date] = None) -> Dict:
    today = today or date.today()
    today_ts = pd.Timestamp(today)
    month_start = pd.Timestamp(today.replace(day=1))
    week_ago = pd.Timestamp(datetime.now() - timedelta(days=7))

    df = bookings_frame(db)
    active = df[df["status"].isin(ACTIVE_BOOKING_STATUSES)]
    revenue_rows = df[df["status"].isin(REVENUE_STATUSES)]

    occupied_today = active[(active["check_in"] <= today_ts) & (active["check_out"] > today_ts)]
    paid_today = df[(df["payment_status"] == "paid") & (df["payment_date"].dt.normalize() == today_ts)]

    recent = df[df["created_at"] >= week_ago].sort_values("created_at", ascending=False).head(5)
    recent_bookings = [
        {
            "id": int(row.id),
            "guestName": row.customer_name,
            "roomNumber": row.room_number,
            "roomType": row.room_type,
            "checkInDate": row.check_in.date().isoformat(),
            "checkOutDate": row.check_out.date().isoformat(),
            "status": row.status,
            "totalAmount": float(row.total_amount),
        }
        for row in recent.itertuples(index=False)
    ]

    return {
        "overview": {
            "totalRooms": db.query(Room).count(),
            "totalUsers": db.query(User).count(),
            "totalBookings": int(len(df)),
            "occupiedToday": int(occupied_today["room_id"].nunique()),
            "roomsNeedingCleaning": db.query(Room).filter(Room.housekeeping_status == "dirty").count(),
            "monthlyRevenue": float(revenue_rows[revenue_rows["created_at"] >= month_start]["total_amount"].sum()),
            "revenueToday": float(paid_today["total_amount"].sum()),
        },
        "today": {
            "checkIns": int(len(active[active["check_in"] == today_ts])),
            "checkOuts": int(len(df[(df["status"] == "checked-in") & (df["check_out"] == today_ts)])),
        },
        "recentBookings": recent_bookings,
    }
