# backend/perfume_chat/services/prompt_builder.py

import json
from typing import Any, List

from perfume_chat.models.catalog_models import PerfumeRecord


SEPARATOR = "\n\n---\n\n"

NOT_FOUND_INSTRUCTION = (
    "Nie znaleziono perfum pasujących do zapytania w bazie danych. "
    "Odpowiedz pomocnie, sugerując inne podejście do wyszukiwania lub zadaj pytania "
    "pomocnicze, aby lepiej zrozumieć potrzeby użytkownika."
)

FOUND_INSTRUCTION = (
    "Znalezione perfumy w bazie danych:\n\n{context}\n\n"
    "Użyj tych informacji, aby udzielić szczegółowej i pomocnej odpowiedzi. "
    "Jeśli użytkownik pyta o konkretne perfumy, skup się na tych znalezionych w bazie. "
    "Jeśli pyta ogólnie, możesz użyć znalezionych perfum jako przykładów lub punktu wyjścia."
)

SYSTEM_PROMPT_TEMPLATE = """Jesteś ekspertem w dziedzinie perfum - profesjonalnym asystentem perfumowym z głęboką wiedzą o zapachach, nutach zapachowych, kompozycjach i trendach w świecie perfum.

Twoje zadania:
1. Pomagasz użytkownikom znaleźć idealne perfumy na podstawie ich preferencji, okazji, budżetu i stylu życia
2. Wyjaśniasz charakterystykę zapachów, nuty zapachowe i kompozycje
3. Rekomendujesz perfumy na podstawie podobieństwa, okazji, sezonu i innych kryteriów
4. Porównujesz perfumy i pomagasz w wyborze
5. Udzielasz profesjonalnych porad dotyczących aplikacji, przechowywania i pielęgnacji perfum

Styl komunikacji:
- Bądź profesjonalny, ale przyjazny i przystępny
- Używaj terminologii perfumeryjnej, ale wyjaśniaj trudne pojęcia
- Bądź entuzjastyczny, ale obiektywny
- Zawsze odpowiadaj po polsku
- Formatuj odpowiedzi w sposób czytelny, używając akapitów i list gdy to pomocne

{catalog_section}

Pamiętaj: Zawsze odpowiadaj po polsku i bądź pomocny, profesjonalny i entuzjastyczny w temacie perfum."""


# (field, label) in render order; list fields are joined with ", "
LIST_FIELDS = [
    ("notes", "Nuty zapachowe"),
    ("season", "Sezon"),
    ("gender", "Dla"),
]
TAIL_LIST_FIELDS = [
    ("pros", "Zalety"),
    ("cons", "Wady"),
    ("similar_perfumes", "Podobne perfumy"),
]


def _present(value: Any) -> bool:
    return value is not None and value != "" and value != [] and value != {}


def _json(value: Any) -> str:
    return json.dumps(value, ensure_ascii=False)


def _as_list(value: Any) -> str:
    if isinstance(value, list):
        return ", ".join(str(v) for v in value)
    return _json(value)


def _format_rating(record: PerfumeRecord) -> str:
    rating = f"{record.rating:g}" if isinstance(record.rating, float) else str(record.rating)
    line = f"⭐ Ocena: {rating}/5"
    if _present(record.rating_count):
        line += f" ({record.rating_count} opinii)"
    return line


def format_perfume(record: PerfumeRecord) -> str:
    """Render one perfume as a text block, skipping missing attributes."""
    lines = [f"**{record.perfume_name}**" + (f" ({record.brand})" if _present(record.brand) else "")]

    if _present(record.description):
        lines.append(f"Opis: {record.description}")
    if _present(record.rating):
        lines.append(_format_rating(record))

    for field, label in LIST_FIELDS:
        value = getattr(record, field)
        if _present(value):
            lines.append(f"{label}: {_as_list(value)}")

    if _present(record.longevity):
        lines.append(f"Trwałość: {_json(record.longevity)}")
    if _present(record.sillage):
        lines.append(f"Sillage: {_json(record.sillage)}")
    if _present(record.time_of_day):
        lines.append(f"Pora dnia: {_as_list(record.time_of_day)}")
    if _present(record.value_for_money):
        lines.append(f"Stosunek jakości do ceny: {_json(record.value_for_money)}")

    for field, label in TAIL_LIST_FIELDS:
        value = getattr(record, field)
        if _present(value):
            lines.append(f"{label}: {_as_list(value)}")

    return "\n".join(lines) + "\n"


def build_perfume_context(records: List[PerfumeRecord]) -> str:
    return SEPARATOR.join(format_perfume(r) for r in records)


def build_system_prompt(records: List[PerfumeRecord]) -> str:
    if records:
        catalog_section = FOUND_INSTRUCTION.format(context=build_perfume_context(records))
    else:
        catalog_section = NOT_FOUND_INSTRUCTION
    return SYSTEM_PROMPT_TEMPLATE.format(catalog_section=catalog_section)
