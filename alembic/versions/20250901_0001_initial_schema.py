"""initial schema: recipe, ingredient, instruction

Revision ID: 20250901_0001
Revises:
Create Date: 2025-09-01 00:00:00

"""
from alembic import op
import sqlalchemy as sa

# revision identifiers, used by Alembic.
revision = "20250901_0001"
down_revision = None
branch_labels = None
depends_on = None

def upgrade():
    op.create_table(
        "recipe",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column("title", sa.String(), nullable=False),
        sa.Column("description", sa.String(), nullable=False, server_default=""),
        sa.Column("author", sa.String(), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.Column("deleted_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("version", sa.Integer(), nullable=False),
        sa.PrimaryKeyConstraint("id", name="pk_recipe"),
    )
    op.create_index("ix_recipe_author", "recipe", ["author"], unique=False)
    op.create_index("ix_recipe_deleted_at", "recipe", ["deleted_at"], unique=False)

    # Children: FK with NO ACTION, soft-deleting a recipe leaves them in place
    op.create_table(
        "ingredient",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column("amount", sa.String(), nullable=False),
        sa.Column("unit", sa.String(), nullable=False),
        sa.Column("description", sa.String(), nullable=False),
        sa.Column("recipe_id", sa.Integer(), nullable=True),
        sa.PrimaryKeyConstraint("id", name="pk_ingredient"),
        sa.ForeignKeyConstraint(
            ["recipe_id"], ["recipe.id"],
            name="fk_ingredient_recipe_id_recipe", ondelete="NO ACTION", onupdate="NO ACTION",
        ),
    )
    op.create_index("ix_ingredient_recipe_id", "ingredient", ["recipe_id"], unique=False)

    op.create_table(
        "instruction",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column("details", sa.String(), nullable=False),
        sa.Column("recipe_id", sa.Integer(), nullable=True),
        sa.PrimaryKeyConstraint("id", name="pk_instruction"),
        sa.ForeignKeyConstraint(
            ["recipe_id"], ["recipe.id"],
            name="fk_instruction_recipe_id_recipe", ondelete="NO ACTION", onupdate="NO ACTION",
        ),
    )
    op.create_index("ix_instruction_recipe_id", "instruction", ["recipe_id"], unique=False)

def downgrade():
    # No data is preserved
    op.drop_index("ix_instruction_recipe_id", table_name="instruction")
    op.drop_table("instruction")
    op.drop_index("ix_ingredient_recipe_id", table_name="ingredient")
    op.drop_table("ingredient")
    op.drop_index("ix_recipe_deleted_at", table_name="recipe")
    op.drop_index("ix_recipe_author", table_name="recipe")
    op.drop_table("recipe")
