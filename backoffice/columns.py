"""Heuristic mapping of spreadsheet headers onto canonical fields.

Exports arrive from different systems with different header text for the same
column ("Filial", "Unidade", "Loja").  Each canonical field owns an ordered
list of keywords; :func:`resolve` tries a case-insensitive exact match for
every keyword first and only then falls back to substring matching, so a
short keyword such as "Total" does not steal an unrelated header like
"Total Geral Anual" when a better candidate exists.
"""
from __future__ import annotations

from typing import Any, Mapping, Optional, Sequence

FIELD_KEYWORDS: dict[str, tuple[str, ...]] = {
    "branch": ("Filial", "Unidade", "Loja"),
    "group": ("Grupo", "Group"),
    "subgroup": ("Subgrupo", "Sub Group"),
    "cost_center": ("Centro", "Centro de Custo", "Cost Center", "CC"),
    "chart_of_accounts": ("Plano de Contas", "Plano", "Conta Contabil"),
    "vendor": ("Fornecedor", "Vendor", "Participante"),
    "title": ("Titulo", "Descrição", "Historico", "Item"),
    "date": ("Data", "Vencimento", "Pagamento", "Emissao"),
    "amount": ("Valor", "Total", "Liquido", "Pago", "Vlr"),
    "status": ("Status", "Situacao"),
    "sector": ("Setor", "Categoria"),
    "department": ("Departamento", "Depto"),
    "section": ("Seção", "Secao", "Item", "Produto"),
}

# Sales columns of a goal sheet that already carries the three periods.
SALES_KEYWORDS: dict[str, tuple[str, ...]] = {
    "sales_ref": ("Venda Mês Ref", "Venda Mes Ref", "Venda Atual", "Current", "Ref"),
    "sales_minus_1": ("Venda Mês Ant. 1", "Month -1", "Ant 1", "Anterior"),
    "sales_minus_2": ("Venda Mês Ant. 2", "Month -2", "Ant 2"),
}

# Value column of a single-period sales file.
PERIOD_VALUE_KEYWORDS: tuple[str, ...] = ("Venda", "Total", "Valor", "Realizado", "Liquido")


def find_column(
    keys: Sequence[str],
    keywords: Sequence[str],
    exclude: Sequence[str] = (),
) -> Optional[str]:
    """Return the header that best matches ``keywords`` or ``None``.

    Headers containing any of the ``exclude`` fragments (case-insensitive)
    are never considered.  Within a tier the first header in ``keys`` order
    wins.
    """

    lowered = [
        (key, str(key).lower())
        for key in keys
        if not any(fragment.lower() in str(key).lower() for fragment in exclude)
    ]
    for keyword in keywords:
        needle = keyword.lower()
        for key, low in lowered:
            if low == needle:
                return key
    for keyword in keywords:
        needle = keyword.lower()
        for key, low in lowered:
            if needle in low:
                return key
    return None


def resolve(record: Mapping[str, Any], keywords: Sequence[str], exclude: Sequence[str] = ()) -> Any:
    """Return the value of the column matching ``keywords`` or ``None``."""

    key = find_column(list(record.keys()), keywords, exclude)
    if key is None:
        return None
    return record[key]


def resolve_field(record: Mapping[str, Any], field_name: str) -> Any:
    return resolve(record, FIELD_KEYWORDS[field_name])


class ColumnResolver:
    """Resolve canonical fields with a cache keyed on the header set.

    Every row of one export shares the same headers, so the chosen header per
    field is computed once per distinct header tuple.  Results are identical
    to calling :func:`resolve` directly.
    """

    def __init__(self, keyword_table: Mapping[str, Sequence[str]] = FIELD_KEYWORDS) -> None:
        self._keyword_table = keyword_table
        self._cache: dict[tuple[tuple[str, ...], str], Optional[str]] = {}

    def column_for(self, record: Mapping[str, Any], field_name: str) -> Optional[str]:
        headers = tuple(record.keys())
        cache_key = (headers, field_name)
        if cache_key not in self._cache:
            self._cache[cache_key] = find_column(headers, self._keyword_table[field_name])
        return self._cache[cache_key]

    def get(self, record: Mapping[str, Any], field_name: str) -> Any:
        column = self.column_for(record, field_name)
        if column is None:
            return None
        return record[column]


__all__ = [
    "FIELD_KEYWORDS",
    "SALES_KEYWORDS",
    "PERIOD_VALUE_KEYWORDS",
    "find_column",
    "resolve",
    "resolve_field",
    "ColumnResolver",
]
