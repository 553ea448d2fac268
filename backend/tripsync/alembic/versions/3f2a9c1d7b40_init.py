"""init

Revision ID: 3f2a9c1d7b40
Revises:
Create Date: 2026-09-28 21:14:03.512877

"""

import sqlalchemy as sa
import sqlmodel.sql.sqltypes
from alembic import op

# revision identifiers, used by Alembic.
revision = "3f2a9c1d7b40"
down_revision = None
branch_labels = None
depends_on = None


def upgrade():
    op.create_table(
        "user",
        sa.Column("username", sqlmodel.sql.sqltypes.AutoString(), nullable=False),
        sa.Column("password", sqlmodel.sql.sqltypes.AutoString(), nullable=False),
        sa.Column("currency", sqlmodel.sql.sqltypes.AutoString(), nullable=False),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.PrimaryKeyConstraint("username", name=op.f("pk_user")),
    )
    op.create_table(
        "trip",
        sa.Column("title", sqlmodel.sql.sqltypes.AutoString(length=100), nullable=False),
        sa.Column("notes", sqlmodel.sql.sqltypes.AutoString(length=1000), nullable=True),
        sa.Column("start_date", sa.Date(), nullable=True),
        sa.Column("end_date", sa.Date(), nullable=True),
        sa.Column("is_favorite", sa.Boolean(), nullable=False),
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("user", sqlmodel.sql.sqltypes.AutoString(), nullable=False),
        sa.Column("country", sa.JSON(), nullable=False),
        sa.Column("budget", sa.JSON(), nullable=False),
        sa.Column("share_enabled", sa.Boolean(), nullable=False),
        sa.Column("share_token", sqlmodel.sql.sqltypes.AutoString(), nullable=True),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.Column("updated_at", sa.DateTime(), nullable=False),
        sa.ForeignKeyConstraint(["user"], ["user.username"], name=op.f("fk_trip_user_user"), ondelete="CASCADE"),
        sa.PrimaryKeyConstraint("id", name=op.f("pk_trip")),
    )
    with op.batch_alter_table("trip", schema=None) as batch_op:
        batch_op.create_index("idx_trip_user_created", ["user", "created_at"], unique=False)
        batch_op.create_index(batch_op.f("ix_trip_share_token"), ["share_token"], unique=True)
        batch_op.create_index(batch_op.f("ix_trip_user"), ["user"], unique=False)

    op.create_table(
        "tripmember",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("user", sqlmodel.sql.sqltypes.AutoString(), nullable=False),
        sa.Column("role", sa.Enum("OWNER", "EDITOR", "VIEWER", name="memberrole"), nullable=False),
        sa.Column("added_by", sqlmodel.sql.sqltypes.AutoString(), nullable=True),
        sa.Column("added_at", sa.DateTime(), nullable=False),
        sa.Column("trip_id", sa.Integer(), nullable=False),
        sa.ForeignKeyConstraint(
            ["added_by"], ["user.username"], name=op.f("fk_tripmember_added_by_user"), ondelete="SET NULL"
        ),
        sa.ForeignKeyConstraint(["trip_id"], ["trip.id"], name=op.f("fk_tripmember_trip_id_trip"), ondelete="CASCADE"),
        sa.ForeignKeyConstraint(["user"], ["user.username"], name=op.f("fk_tripmember_user_user"), ondelete="CASCADE"),
        sa.PrimaryKeyConstraint("id", name=op.f("pk_tripmember")),
    )
    with op.batch_alter_table("tripmember", schema=None) as batch_op:
        batch_op.create_index("idx_tripmember_trip_user", ["trip_id", "user"], unique=False)
        batch_op.create_index(batch_op.f("ix_tripmember_trip_id"), ["trip_id"], unique=False)

    op.create_table(
        "itineraryitem",
        sa.Column("title", sqlmodel.sql.sqltypes.AutoString(), nullable=False),
        sa.Column("location", sqlmodel.sql.sqltypes.AutoString(), nullable=True),
        sa.Column("day", sa.Integer(), nullable=False),
        sa.Column("start_time", sqlmodel.sql.sqltypes.AutoString(), nullable=True),
        sa.Column("end_time", sqlmodel.sql.sqltypes.AutoString(), nullable=True),
        sa.Column("notes", sqlmodel.sql.sqltypes.AutoString(length=500), nullable=True),
        sa.Column("status", sa.Enum("PLANNED", "DONE", "CANCELLED", name="itinerarystatusenum"), nullable=False),
        sa.Column("lat", sa.Float(), nullable=True),
        sa.Column("lng", sa.Float(), nullable=True),
        sa.Column("cost", sa.Float(), nullable=False),
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("order", sa.Integer(), nullable=False),
        sa.Column("trip_id", sa.Integer(), nullable=False),
        sa.ForeignKeyConstraint(
            ["trip_id"], ["trip.id"], name=op.f("fk_itineraryitem_trip_id_trip"), ondelete="CASCADE"
        ),
        sa.PrimaryKeyConstraint("id", name=op.f("pk_itineraryitem")),
    )
    with op.batch_alter_table("itineraryitem", schema=None) as batch_op:
        batch_op.create_index("idx_itineraryitem_trip_day_order", ["trip_id", "day", "order"], unique=False)
        batch_op.create_index(batch_op.f("ix_itineraryitem_trip_id"), ["trip_id"], unique=False)

    op.create_table(
        "tripcomment",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("user", sqlmodel.sql.sqltypes.AutoString(), nullable=True),
        sa.Column("content", sqlmodel.sql.sqltypes.AutoString(length=1000), nullable=False),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.Column("trip_id", sa.Integer(), nullable=False),
        sa.ForeignKeyConstraint(["trip_id"], ["trip.id"], name=op.f("fk_tripcomment_trip_id_trip"), ondelete="CASCADE"),
        sa.ForeignKeyConstraint(["user"], ["user.username"], name=op.f("fk_tripcomment_user_user"), ondelete="SET NULL"),
        sa.PrimaryKeyConstraint("id", name=op.f("pk_tripcomment")),
    )
    with op.batch_alter_table("tripcomment", schema=None) as batch_op:
        batch_op.create_index(batch_op.f("ix_tripcomment_trip_id"), ["trip_id"], unique=False)

    op.create_table(
        "tripexpense",
        sa.Column("title", sqlmodel.sql.sqltypes.AutoString(), nullable=False),
        sa.Column("amount", sa.Float(), nullable=False),
        sa.Column(
            "category",
            sa.Enum(
                "FOOD",
                "TRANSPORT",
                "ACCOMMODATION",
                "ACTIVITIES",
                "SHOPPING",
                "HEALTH",
                "ENTERTAINMENT",
                "MISCELLANEOUS",
                name="expensecategoryenum",
            ),
            nullable=False,
        ),
        sa.Column("date", sa.DateTime(), nullable=False),
        sa.Column("currency", sqlmodel.sql.sqltypes.AutoString(), nullable=False),
        sa.Column("notes", sqlmodel.sql.sqltypes.AutoString(), nullable=True),
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.Column("trip_id", sa.Integer(), nullable=False),
        sa.ForeignKeyConstraint(["trip_id"], ["trip.id"], name=op.f("fk_tripexpense_trip_id_trip"), ondelete="CASCADE"),
        sa.PrimaryKeyConstraint("id", name=op.f("pk_tripexpense")),
    )
    with op.batch_alter_table("tripexpense", schema=None) as batch_op:
        batch_op.create_index(batch_op.f("ix_tripexpense_trip_id"), ["trip_id"], unique=False)

    op.create_table(
        "tripreceipt",
        sa.Column("original_name", sqlmodel.sql.sqltypes.AutoString(), nullable=False),
        sa.Column("size", sa.Integer(), nullable=False),
        sa.Column("mime_type", sqlmodel.sql.sqltypes.AutoString(), nullable=True),
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("filename", sqlmodel.sql.sqltypes.AutoString(), nullable=False),
        sa.Column("uploaded_at", sa.DateTime(), nullable=False),
        sa.Column("uploaded_by", sqlmodel.sql.sqltypes.AutoString(), nullable=True),
        sa.Column("trip_id", sa.Integer(), nullable=False),
        sa.ForeignKeyConstraint(["trip_id"], ["trip.id"], name=op.f("fk_tripreceipt_trip_id_trip"), ondelete="CASCADE"),
        sa.ForeignKeyConstraint(
            ["uploaded_by"], ["user.username"], name=op.f("fk_tripreceipt_uploaded_by_user"), ondelete="SET NULL"
        ),
        sa.PrimaryKeyConstraint("id", name=op.f("pk_tripreceipt")),
    )
    with op.batch_alter_table("tripreceipt", schema=None) as batch_op:
        batch_op.create_index(batch_op.f("ix_tripreceipt_trip_id"), ["trip_id"], unique=False)


def downgrade():
    with op.batch_alter_table("tripreceipt", schema=None) as batch_op:
        batch_op.drop_index(batch_op.f("ix_tripreceipt_trip_id"))
    op.drop_table("tripreceipt")

    with op.batch_alter_table("tripexpense", schema=None) as batch_op:
        batch_op.drop_index(batch_op.f("ix_tripexpense_trip_id"))
    op.drop_table("tripexpense")

    with op.batch_alter_table("tripcomment", schema=None) as batch_op:
        batch_op.drop_index(batch_op.f("ix_tripcomment_trip_id"))
    op.drop_table("tripcomment")

    with op.batch_alter_table("itineraryitem", schema=None) as batch_op:
        batch_op.drop_index(batch_op.f("ix_itineraryitem_trip_id"))
        batch_op.drop_index("idx_itineraryitem_trip_day_order")
    op.drop_table("itineraryitem")

    with op.batch_alter_table("tripmember", schema=None) as batch_op:
        batch_op.drop_index(batch_op.f("ix_tripmember_trip_id"))
        batch_op.drop_index("idx_tripmember_trip_user")
    op.drop_table("tripmember")

    with op.batch_alter_table("trip", schema=None) as batch_op:
        batch_op.drop_index(batch_op.f("ix_trip_user"))
        batch_op.drop_index(batch_op.f("ix_trip_share_token"))
        batch_op.drop_index("idx_trip_user_created")
    op.drop_table("trip")

    op.drop_table("user")
