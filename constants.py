"""
RedBoat Hotel - Constantes de dominio
=====================================

Valores compartidos por la API y el dashboard. Sin dependencias: el
dashboard los importa sin levantar el engine de SQLAlchemy.
"""

SYSTEM_ROLES = ("user", "admin", "superadmin")
ROOM_TYPES = ("Standard", "Deluxe", "Suite", "Presidential")
HOUSEKEEPING_STATUSES = ("clean", "dirty", "in-progress")
BOOKING_STATUSES = ("pending", "confirmed", "checked-in", "checked-out", "cancelled")
PAYMENT_STATUSES = ("pending", "paid", "refunded")
NOTIFICATION_TYPES = ("info", "success", "warning", "error")
MODULE_PERMISSIONS = ("manageBookings", "manageRooms", "manageHousekeeping", "manageUsers", "viewReports")

# Reservas que ocupan la habitación
ACTIVE_BOOKING_STATUSES = ("confirmed", "checked-in")
