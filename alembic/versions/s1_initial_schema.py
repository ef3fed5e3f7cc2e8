"""
Initial schema: users, companies, sites
========================================

user / usermeta      accounts and key/value profile attributes
company              owned by a user; may not be deleted while it has sites
site / sitemeta      one row per provisioned domain plus per-site settings
"""

from alembic import op
import sqlalchemy as sa

# revision identifiers
revision = "s1_initial_schema"
down_revision = None
branch_labels = None
depends_on = None


def _timestamps():
    return [
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=True),
    ]


def upgrade() -> None:
    op.create_table(
        "user",
        sa.Column("id", sa.Uuid(), primary_key=True),
        sa.Column("email", sa.String(255), nullable=False),
        sa.Column("username", sa.String(100), nullable=False),
        sa.Column("hashed_password", sa.String(), nullable=False),
        sa.Column("role", sa.String(20), server_default="user"),
        sa.Column("status", sa.String(20), server_default="active"),
        *_timestamps(),
    )
    op.create_index("ix_user_id", "user", ["id"])
    op.create_index("ix_user_email", "user", ["email"], unique=True)
    op.create_index("ix_user_username", "user", ["username"], unique=True)

    op.create_table(
        "usermeta",
        sa.Column("id", sa.Uuid(), primary_key=True),
        sa.Column("user_id", sa.Uuid(), sa.ForeignKey("user.id", ondelete="CASCADE"), nullable=False),
        sa.Column("meta_key", sa.String(100), nullable=False),
        sa.Column("meta_value", sa.Text(), server_default=""),
        sa.UniqueConstraint("user_id", "meta_key", name="uq_usermeta_user_key"),
    )
    op.create_index("ix_usermeta_user_id", "usermeta", ["user_id"])

    op.create_table(
        "company",
        sa.Column("id", sa.Uuid(), primary_key=True),
        sa.Column("name", sa.String(255), nullable=False),
        sa.Column("email", sa.String(255), nullable=True),
        sa.Column("phone", sa.String(50), nullable=True),
        sa.Column("address", sa.String(500), nullable=True),
        sa.Column("vat", sa.String(50), server_default=""),
        sa.Column("status", sa.Boolean(), server_default=sa.true()),
        sa.Column("user_id", sa.Uuid(), sa.ForeignKey("user.id"), nullable=False),
        *_timestamps(),
    )
    op.create_index("ix_company_id", "company", ["id"])
    op.create_index("ix_company_name", "company", ["name"])
    op.create_index("ix_company_user_id", "company", ["user_id"])

    op.create_table(
        "site",
        sa.Column("id", sa.Uuid(), primary_key=True),
        sa.Column("domain", sa.String(253), nullable=False),
        sa.Column("site_name", sa.String(255), nullable=False),
        sa.Column("status", sa.Boolean(), server_default=sa.true()),
        sa.Column("user_id", sa.Uuid(), sa.ForeignKey("user.id"), nullable=False),
        sa.Column("company_id", sa.Uuid(), sa.ForeignKey("company.id"), nullable=False),
        *_timestamps(),
    )
    op.create_index("ix_site_id", "site", ["id"])
    op.create_index("ix_site_domain", "site", ["domain"], unique=True)
    op.create_index("ix_site_user_id", "site", ["user_id"])
    op.create_index("ix_site_company_id", "site", ["company_id"])

    op.create_table(
        "sitemeta",
        sa.Column("id", sa.Uuid(), primary_key=True),
        sa.Column("site_id", sa.Uuid(), sa.ForeignKey("site.id"), nullable=False),
        sa.Column("meta_key", sa.String(100), nullable=False),
        sa.Column("meta_value", sa.Text(), server_default=""),
        sa.UniqueConstraint("site_id", "meta_key", name="uq_sitemeta_site_key"),
    )
    op.create_index("ix_sitemeta_site_id", "sitemeta", ["site_id"])


def downgrade() -> None:
    op.drop_table("sitemeta")
    op.drop_table("site")
    op.drop_table("company")
    op.drop_table("usermeta")
    op.drop_table("user")
