"""SQLAlchemy export — declarative ORM module.

Only the column types actually used are imported, in sorted order, so the
generated module is stable for a given schema.
"""

from __future__ import annotations

import keyword

from vibedb.export.base import TextExporter, class_name
from vibedb.models.schema import Column, ColumnType, Schema, Table

# ColumnType -> (import source, expression)
_SA_TYPES = {
    ColumnType.UUID: ("postgresql", "UUID(as_uuid=True)"),
    ColumnType.VARCHAR: ("sqlalchemy", "String"),
    ColumnType.INT: ("sqlalchemy", "Integer"),
    ColumnType.TIMESTAMP: ("sqlalchemy", "DateTime"),
    ColumnType.BOOLEAN: ("sqlalchemy", "Boolean"),
    ColumnType.NUMERIC: ("sqlalchemy", "Numeric"),
    ColumnType.TEXT: ("sqlalchemy", "Text"),
    ColumnType.JSONB: ("postgresql", "JSONB"),
    ColumnType.DECIMAL: ("sqlalchemy", "Numeric"),
    ColumnType.FLOAT: ("sqlalchemy", "Float"),
}


def _py_string(value: str) -> str:
    return '"' + value.replace("\\", "\\\\").replace('"', '\\"') + '"'


class SqlAlchemyExporter(TextExporter):
    """``models.py`` with one declarative class per table."""

    format_key = "sqlalchemy"
    file_extension = ".py"

    def render(self, schema: Schema) -> str:
        core = {"Column"}
        dialect: set[str] = set()
        bodies = []
        for table in schema.tables:
            bodies.append(self._class_block(table, core, dialect))

        lines = ['"""SQLAlchemy models generated by VibeDB."""', ""]
        lines.append(f"from sqlalchemy import {', '.join(sorted(core))}")
        if dialect:
            lines.append(
                f"from sqlalchemy.dialects.postgresql import {', '.join(sorted(dialect))}"
            )
        lines.append("from sqlalchemy.orm import declarative_base")
        lines.extend(["", "Base = declarative_base()", ""])
        for body in bodies:
            lines.extend(["", body])
        return "\n".join(lines) + "\n"

    def _class_block(self, table: Table, core: set[str], dialect: set[str]) -> str:
        lines = [
            f"class {class_name(table.name)}(Base):",
            f"    __tablename__ = {_py_string(table.name)}",
        ]
        indexes = [i for i in table.indexes if i.columns]
        if indexes:
            core.add("Index")
            args = []
            for index in indexes:
                cols = ", ".join(_py_string(c) for c in index.columns)
                name = _py_string(index.name or f"idx_{table.name}_{'_'.join(index.columns)}")
                unique = ", unique=True" if index.unique else ""
                args.append(f"        Index({name}, {cols}{unique}),")
            lines.append("    __table_args__ = (")
            lines.extend(args)
            lines.append("    )")
        lines.append("")
        for col in table.columns:
            lines.append("    " + self._column_line(col, core, dialect))
        return "\n".join(lines) + "\n"

    @staticmethod
    def _column_line(col: Column, core: set[str], dialect: set[str]) -> str:
        source, expr = _SA_TYPES[col.type]
        symbol = expr.split("(")[0]
        (dialect if source == "postgresql" else core).add(symbol)

        args = [expr]
        if col.is_foreign_key and col.linked_table:
            core.add("ForeignKey")
            args.append(f"ForeignKey({_py_string(f'{col.linked_table}.{col.linked_column}')})")
        if col.is_primary:
            args.append("primary_key=True")
        if col.is_unique:
            args.append("unique=True")
        if col.is_not_null:
            args.append("nullable=False")
        if col.default_value is not None:
            core.add("text")
            args.append(f"server_default=text({_py_string(col.default_value)})")
        if col.description:
            args.append(f"comment={_py_string(col.description)}")

        valid = col.name.isidentifier() and not keyword.iskeyword(col.name)
        attr = col.name if valid else f"col_{col.name}"
        if attr != col.name:
            args.insert(0, _py_string(col.name))
        return f"{attr} = Column({', '.join(args)})"
