"""Initial schema: users, taxis, routes, bookings, reviews.

Revision ID: 001
Revises: None
Create Date: 2026-10-19
"""
from typing import Sequence, Union
from alembic import op
import sqlalchemy as sa

revision: str = "001"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def _timestamps():
    return [
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
    ]


def upgrade() -> None:
    op.create_table(
        "users",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("name", sa.String(100), nullable=False),
        sa.Column("email", sa.String(255), nullable=False),
        sa.Column("phone", sa.String(20), nullable=True),
        sa.Column("hashed_password", sa.String(255), nullable=False),
        sa.Column("role", sa.String(20), nullable=False, server_default=sa.text("'user'")),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.text("true")),
        *_timestamps(),
        sa.CheckConstraint("role IN ('user', 'driver', 'admin')", name="check_user_role"),
    )
    op.create_index("ix_users_id", "users", ["id"])
    op.create_index("ix_users_email", "users", ["email"], unique=True)

    op.create_table(
        "taxis",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("name", sa.String(100), nullable=False),
        sa.Column("model", sa.String(100), nullable=False),
        sa.Column("vehicle_number", sa.String(20), nullable=False, unique=True),
        sa.Column("taxi_type", sa.String(20), nullable=False),
        sa.Column("capacity", sa.Integer(), nullable=False, server_default=sa.text("4")),
        sa.Column("price_per_km", sa.Numeric(10, 2), nullable=False),
        sa.Column("driver_name", sa.String(100), nullable=False),
        sa.Column("driver_phone", sa.String(20), nullable=False),
        sa.Column("amenities", sa.JSON(), nullable=False),
        sa.Column("operator", sa.String(100), nullable=False),
        sa.Column("rating", sa.Float(), nullable=False, server_default=sa.text("0")),
        sa.Column("review_count", sa.Integer(), nullable=False, server_default=sa.text("0")),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.text("true")),
        sa.Column("is_approved", sa.Boolean(), nullable=False, server_default=sa.text("true")),
        *_timestamps(),
        sa.CheckConstraint("capacity >= 1 AND capacity <= 10", name="check_taxi_capacity"),
        sa.CheckConstraint("rating >= 0 AND rating <= 5", name="check_taxi_rating"),
        sa.CheckConstraint("review_count >= 0", name="check_taxi_review_count"),
        sa.CheckConstraint(
            "taxi_type IN ('Mini', 'Sedan', 'SUV', 'Luxury', 'Premium')",
            name="check_taxi_type",
        ),
    )
    op.create_index("ix_taxis_id", "taxis", ["id"])
    op.create_index("ix_taxis_active_rating", "taxis", ["is_active", "rating"])

    op.create_table(
        "routes",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("taxi_id", sa.Integer(), sa.ForeignKey("taxis.id"), nullable=False),
        sa.Column("source", sa.String(100), nullable=False),
        sa.Column("destination", sa.String(100), nullable=False),
        sa.Column("departure_time", sa.String(5), nullable=False),
        sa.Column("arrival_time", sa.String(5), nullable=False),
        sa.Column("duration", sa.String(50), nullable=False),
        sa.Column("distance_km", sa.Integer(), nullable=False),
        sa.Column("price", sa.Numeric(10, 2), nullable=False),
        sa.Column("offers", sa.String(255), nullable=True),
        sa.Column("discount", sa.Integer(), nullable=False, server_default=sa.text("0")),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.text("true")),
        sa.Column("is_approved", sa.Boolean(), nullable=False, server_default=sa.text("true")),
        *_timestamps(),
        sa.CheckConstraint("distance_km >= 1", name="check_route_distance"),
        sa.CheckConstraint("price >= 0", name="check_route_price"),
        sa.CheckConstraint("discount >= 0 AND discount <= 100", name="check_route_discount"),
    )
    op.create_index("ix_routes_id", "routes", ["id"])
    op.create_index("ix_routes_taxi_id", "routes", ["taxi_id"])
    op.create_index("ix_routes_search", "routes", ["source", "destination", "is_active"])

    op.create_table(
        "bookings",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("booking_code", sa.String(40), nullable=False, unique=True),
        sa.Column("user_id", sa.Integer(), sa.ForeignKey("users.id"), nullable=False),
        sa.Column("taxi_id", sa.Integer(), sa.ForeignKey("taxis.id"), nullable=False),
        sa.Column("route_id", sa.Integer(), sa.ForeignKey("routes.id"), nullable=False),
        sa.Column("ride_date", sa.DateTime(timezone=True), nullable=False),
        sa.Column("ride_day", sa.Date(), nullable=False),
        sa.Column("passenger_count", sa.Integer(), nullable=False),
        sa.Column("passenger_name", sa.String(100), nullable=False),
        sa.Column("passenger_phone", sa.String(20), nullable=False),
        sa.Column("pickup_location", sa.String(255), nullable=True),
        sa.Column("pickup_time", sa.String(5), nullable=True),
        sa.Column("drop_location", sa.String(255), nullable=True),
        sa.Column("drop_time", sa.String(5), nullable=True),
        sa.Column("total_amount", sa.Numeric(10, 2), nullable=False),
        sa.Column("payment_status", sa.String(20), nullable=False, server_default=sa.text("'pending'")),
        sa.Column("payment_method", sa.String(20), nullable=True),
        sa.Column("transaction_id", sa.String(64), nullable=True),
        sa.Column("booking_status", sa.String(20), nullable=False, server_default=sa.text("'confirmed'")),
        sa.Column("cancellation_reason", sa.String(255), nullable=True),
        sa.Column("cancelled_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("refund_amount", sa.Numeric(10, 2), nullable=False, server_default=sa.text("0")),
        *_timestamps(),
        sa.CheckConstraint(
            "passenger_count >= 1 AND passenger_count <= 7",
            name="check_booking_passenger_count",
        ),
        sa.CheckConstraint("total_amount >= 0", name="check_booking_total_non_negative"),
        sa.CheckConstraint(
            "refund_amount >= 0 AND refund_amount <= total_amount",
            name="check_booking_refund_bounds",
        ),
        sa.CheckConstraint(
            "payment_status IN ('pending', 'completed', 'failed', 'refunded')",
            name="check_booking_payment_status",
        ),
        sa.CheckConstraint(
            "booking_status IN ('confirmed', 'cancelled', 'completed')",
            name="check_booking_status",
        ),
    )
    op.create_index("ix_bookings_id", "bookings", ["id"])
    # DOUBLE-BOOKING GUARD: the conflict query in the booking engine and the
    # INSERT are separate statements, so two requests can both pass the
    # query. This partial index lets only one of them commit a confirmed row
    # for a taxi, route and day. Cancelled rows are outside the index.
    op.create_index(
        "uq_bookings_confirmed_slot",
        "bookings",
        ["taxi_id", "route_id", "ride_day"],
        unique=True,
        postgresql_where=sa.text("booking_status = 'confirmed'"),
        sqlite_where=sa.text("booking_status = 'confirmed'"),
    )
    op.create_index("ix_bookings_taxi_ride_date", "bookings", ["taxi_id", "ride_date"])
    op.create_index("ix_bookings_route_ride_day", "bookings", ["route_id", "ride_day"])
    op.create_index("ix_bookings_user_created", "bookings", ["user_id", "created_at"])

    op.create_table(
        "reviews",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("user_id", sa.Integer(), sa.ForeignKey("users.id"), nullable=False),
        sa.Column("taxi_id", sa.Integer(), sa.ForeignKey("taxis.id"), nullable=False),
        sa.Column("booking_id", sa.Integer(), sa.ForeignKey("bookings.id"), nullable=False, unique=True),
        sa.Column("rating", sa.Integer(), nullable=False),
        sa.Column("comment", sa.String(500), nullable=False),
        *_timestamps(),
        sa.CheckConstraint("rating >= 1 AND rating <= 5", name="check_review_rating"),
    )
    op.create_index("ix_reviews_id", "reviews", ["id"])
    op.create_index("ix_reviews_taxi_created", "reviews", ["taxi_id", "created_at"])


def downgrade() -> None:
    op.drop_table("reviews")
    op.drop_table("bookings")
    op.drop_table("routes")
    op.drop_table("taxis")
    op.drop_table("users")
