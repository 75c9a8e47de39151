"""
Tests for adding, editing and deleting cards while a session runs.
"""
import pytest

from src.drill import (
    AutoPlayPhase,
    CardNotFound,
    DeckStore,
    EmptyDeckError,
    EngineEvent,
    ManualPhase,
)


class TestDeckStore:
    def test_add_assigns_next_id(self, deck):
        card = deck.add("  Yes ", " Sí ")

        assert card.id == 4
        assert (card.front, card.back) == ("Yes", "Sí")
        assert len(deck) == 4

    def test_get_unknown_card(self, deck):
        with pytest.raises(CardNotFound) as exc:
            deck.get(99)
        assert exc.value.card_id == 99

    def test_delete_last_card_rejected(self, sample_cards):
        deck = DeckStore(sample_cards[:1])

        with pytest.raises(EmptyDeckError):
            deck.delete(1)
        assert len(deck) == 1

    def test_load_seeds_defaults(self, memory_store):
        deck = DeckStore.load(memory_store)

        assert len(deck) == 17
        assert memory_store.get("default.cards") is not None

    def test_load_round_trip(self, memory_store):
        deck = DeckStore.load(memory_store, "travel")
        deck.edit(1, "Hello", "Hola")
        deck.delete(2)

        reloaded = DeckStore.load(memory_store, "travel")

        assert reloaded.get(1).back == "Hola"
        assert 2 not in reloaded
        assert len(reloaded) == 16

    def test_load_invalid_deck_reseeds(self, memory_store):
        memory_store.set("default.cards", {"cards": [{"id": "x"}]})

        deck = DeckStore.load(memory_store)

        assert len(deck) == 17


class TestEdit:
    @pytest.mark.asyncio
    async def test_edit_current_card_during_countdown(self, make_engine, clock, speech, deck):
        engine = make_engine()
        engine.start()

        engine.edit_card(1, "Good day", "Buen día")
        assert engine.snapshot().current_card.back == "Buen día"
        assert deck.get(1).back == "Buen día"

        await clock.advance(5.2)
        assert speech.spoken == ["Buen día"]

    @pytest.mark.asyncio
    async def test_edit_queued_card(self, make_engine):
        engine = make_engine()
        engine.start()

        engine.edit_card(3, "Where's the toilet?", "¿Dónde está el servicio?")

        assert engine.session.queue[-1].front == "Where's the toilet?"

    @pytest.mark.asyncio
    async def test_edit_during_autoplay_uses_new_text(self, make_engine, clock, speech):
        engine = make_engine()
        engine.start_auto_play()
        await clock.advance(2.0)

        engine.edit_card(1, "Good day", "Buen día")
        await clock.advance(7.0)

        assert speech.spoken == ["Good morning", "Buen día"]

    @pytest.mark.asyncio
    async def test_edit_unknown_card(self, make_engine):
        engine = make_engine()
        engine.start()

        with pytest.raises(CardNotFound):
            engine.edit_card(42, "a", "b")


class TestAdd:
    @pytest.mark.asyncio
    async def test_added_card_joins_active_session(self, make_engine, clock):
        results = []
        engine = make_engine(on_complete=results.append)
        engine.start()

        card = engine.add_card("Yes", "Sí")
        assert engine.session.queue[-1].id == card.id

        for _ in range(3):
            engine.record_answer(True)
            await clock.advance(0.5)
        assert results == []
        assert engine.session.current_card.id == card.id

        engine.record_answer(True)
        await clock.advance(0.5)
        assert results[0].total_cards == 4

    @pytest.mark.asyncio
    async def test_add_without_session(self, make_engine, deck):
        engine = make_engine()

        engine.add_card("Yes", "Sí")

        assert len(deck) == 4
        assert engine.session.queue == []


class TestDelete:
    @pytest.mark.asyncio
    async def test_delete_last_card_rejected(self, make_engine, sample_cards):
        engine = make_engine(deck=DeckStore(sample_cards[:1]))
        engine.start()
        before = engine.snapshot()

        with pytest.raises(EmptyDeckError):
            engine.delete_card(1)

        after = engine.snapshot()
        assert after.current_card == before.current_card
        assert after.presentation == before.presentation
        assert len(engine.deck) == 1

    @pytest.mark.asyncio
    async def test_delete_queued_card(self, make_engine):
        engine = make_engine()
        engine.start()

        engine.delete_card(3)

        assert [card.id for card in engine.session.queue] == [2]
        assert engine.session.current_card.id == 1
        assert engine.session.total_asked == 1

    @pytest.mark.asyncio
    async def test_delete_current_card_presents_next(self, make_engine, clock, events):
        engine = make_engine()
        engine.start()
        await clock.advance(2.0)

        engine.delete_card(1)

        assert engine.session.current_card.id == 2
        assert engine.session.presentation.phase == ManualPhase.COUNTING_DOWN
        assert engine.session.presentation.countdown == 5
        assert engine.session.total_asked == 1
        assert events.count(EngineEvent.CARD_PRESENTED) == 2

        await clock.advance(5.0)
        assert engine.session.presentation.phase == ManualPhase.REVEALED

    @pytest.mark.asyncio
    async def test_delete_current_with_empty_queue_resets(self, make_engine, clock, events):
        engine = make_engine()
        engine.start()
        engine.delete_card(3)
        engine.record_answer(True)
        await clock.advance(0.5)

        engine.delete_card(2)

        assert events.count(EngineEvent.RESET) == 1
        assert engine.session.active is False
        assert engine.session.current_card is None

    @pytest.mark.asyncio
    async def test_delete_unanswered_card_can_finish_pass(self, make_engine, clock):
        results = []
        engine = make_engine(on_complete=results.append)
        engine.start()
        engine.record_answer(True)
        await clock.advance(0.5)

        engine.delete_card(3)
        engine.record_answer(True)
        await clock.advance(0.5)

        assert results[0].total_cards == 2
        assert results[0].correct_answers == 2

    @pytest.mark.asyncio
    async def test_delete_answered_card_is_forgotten(self, make_engine, clock):
        engine = make_engine()
        engine.start()
        engine.record_answer(True)
        await clock.advance(0.5)

        engine.delete_card(1)

        assert engine.session.answered_correctly == set()
        assert engine.session.total_asked == 1
        assert engine.snapshot().asked_percentage == pytest.approx(50.0)

    @pytest.mark.asyncio
    async def test_delete_current_during_autoplay_restarts_phases(self, make_engine, clock, events):
        engine = make_engine()
        engine.start_auto_play()
        await clock.advance(10.0)

        engine.delete_card(1)
        assert engine.session.current_card.id == 2
        assert engine.session.auto_play_active is True

        await clock.advance(1.0)
        assert engine.session.presentation.phase == AutoPlayPhase.SOURCE
        assert engine.session.presentation.progress < 1.0
