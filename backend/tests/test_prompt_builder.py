"""Tests for services/prompt_builder.py: perfume rendering and system prompt."""

from __future__ import annotations

from perfume_chat.models.catalog_models import PerfumeRecord
from perfume_chat.services.prompt_builder import (
    NOT_FOUND_INSTRUCTION,
    SEPARATOR,
    build_perfume_context,
    build_system_prompt,
    format_perfume,
)


def _sauvage() -> PerfumeRecord:
    return PerfumeRecord(
        perfume_name="Sauvage",
        brand="Dior",
        description="Świeży, korzenny zapach.",
        rating=4.5,
        rating_count=1200,
        notes=["bergamotka", "pieprz", "ambroksan"],
        season=["wiosna", "lato"],
        gender=["mężczyźni"],
        longevity={"long": 120, "moderate": 40},
        sillage="strong",
        pros=["trwały"],
        cons=["popularny"],
        similar_perfumes=["Bleu de Chanel"],
    )


class TestFormatPerfume:
    def test_full_record_field_order(self):
        block = format_perfume(_sauvage())
        assert block == (
            "**Sauvage** (Dior)\n"
            "Opis: Świeży, korzenny zapach.\n"
            "⭐ Ocena: 4.5/5 (1200 opinii)\n"
            "Nuty zapachowe: bergamotka, pieprz, ambroksan\n"
            "Sezon: wiosna, lato\n"
            "Dla: mężczyźni\n"
            'Trwałość: {"long": 120, "moderate": 40}\n'
            'Sillage: "strong"\n'
            "Zalety: trwały\n"
            "Wady: popularny\n"
            "Podobne perfumy: Bleu de Chanel\n"
        )

    def test_missing_attributes_are_skipped(self):
        block = format_perfume(PerfumeRecord(perfume_name="Anonymous", description="", notes=[]))
        assert block == "**Anonymous**\n"

    def test_rating_without_count(self):
        block = format_perfume(PerfumeRecord(perfume_name="X", rating=4))
        assert "⭐ Ocena: 4/5\n" in block
        assert "opinii" not in block

    def test_non_list_list_field_is_json_encoded(self):
        block = format_perfume(PerfumeRecord(perfume_name="X", season={"zima": 80}))
        assert 'Sezon: {"zima": 80}' in block

    def test_time_of_day_and_value_for_money(self):
        block = format_perfume(PerfumeRecord(
            perfume_name="X", time_of_day=["dzień", "noc"], value_for_money="good",
        ))
        assert "Pora dnia: dzień, noc\n" in block
        assert 'Stosunek jakości do ceny: "good"\n' in block


class TestBuildSystemPrompt:
    def test_empty_results_use_fallback(self):
        prompt = build_system_prompt([])
        assert NOT_FOUND_INSTRUCTION in prompt
        assert "Znalezione perfumy w bazie danych" not in prompt

    def test_results_are_embedded(self):
        prompt = build_system_prompt([_sauvage()])
        assert "Znalezione perfumy w bazie danych:\n\n**Sauvage** (Dior)" in prompt
        assert NOT_FOUND_INSTRUCTION not in prompt

    def test_deterministic(self):
        records = [_sauvage(), PerfumeRecord(perfume_name="Aventus", brand="Creed")]
        assert build_system_prompt(records) == build_system_prompt(list(records))

    def test_context_joined_with_separator(self):
        records = [_sauvage(), PerfumeRecord(perfume_name="Aventus", brand="Creed")]
        context = build_perfume_context(records)
        assert context.count(SEPARATOR) == 1
        assert context.endswith("**Aventus** (Creed)\n")

    def test_braces_in_attributes_survive(self):
        record = PerfumeRecord(perfume_name="{odd}", longevity={"a": 1})
        prompt = build_system_prompt([record])
        assert "**{odd}**" in prompt
        assert 'Trwałość: {"a": 1}' in prompt

    def test_persona_always_present(self):
        for records in ([], [_sauvage()]):
            prompt = build_system_prompt(records)
            assert prompt.startswith("Jesteś ekspertem w dziedzinie perfum")
            assert prompt.endswith("entuzjastyczny w temacie perfum.")
