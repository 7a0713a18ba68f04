"""Initial schema: domains and DNS records."""
from alembic import op
import sqlalchemy as sa

# revision identifiers, used by Alembic.
revision = "2025_08_19_0001"
down_revision = None
branch_labels = None
depends_on = None


def upgrade() -> None:
    op.create_table(
        "domains",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("name", sa.String(length=255), nullable=False),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.Column("updated_at", sa.DateTime(), nullable=True),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_domains_id", "domains", ["id"])
    op.create_index("ix_domains_name", "domains", ["name"], unique=True)

    op.create_table(
        "dns_records",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("domain_id", sa.Integer(), nullable=False),
        sa.Column("type", sa.String(length=10), nullable=False),
        sa.Column("name", sa.String(length=255), nullable=False),
        sa.Column("value", sa.Text(), nullable=False),
        sa.Column("ttl", sa.Integer(), nullable=False, server_default="300"),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.Column("updated_at", sa.DateTime(), nullable=True),
        sa.ForeignKeyConstraint(["domain_id"], ["domains.id"], ondelete="CASCADE"),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_dns_records_id", "dns_records", ["id"])
    op.create_index("ix_dns_records_domain_id", "dns_records", ["domain_id"])
    op.create_index("ix_dns_records_name", "dns_records", ["name"])


def downgrade() -> None:
    op.drop_table("dns_records")
    op.drop_table("domains")
