from __future__ import annotations

from sqlmodel import Session, SQLModel, create_engine, select

from taskboard.domain.models import EventEnvelope, EventRecord
from taskboard.infra.events import EventBus


def test_event_bus_publish_and_subscribe() -> None:
    engine = create_engine("sqlite:///:memory:")
    SQLModel.metadata.create_all(engine)

    bus = EventBus(engine)
    seen: list[str] = []

    def handler(event: EventEnvelope) -> None:
        seen.append(event.event_id)

    event = EventEnvelope(
        event_type="task.assigned",
        actor_id="mod-1",
        payload={"content_id": "c1", "assigned_to": "ana"},
    )
    bus.subscribe("task.assigned", handler)

    with Session(engine) as session:
        bus.publish(event, session=session)
        session.commit()

    with Session(engine) as session:
        stored = session.exec(select(EventRecord)).all()

    assert len(stored) == 1
    assert stored[0].event_id == event.event_id
    assert stored[0].payload == {"content_id": "c1", "assigned_to": "ana"}
    assert seen == [event.event_id]


def test_wildcard_subscribers_and_unsubscribe() -> None:
    engine = create_engine("sqlite:///:memory:")
    SQLModel.metadata.create_all(engine)
    bus = EventBus(engine)
    seen: list[str] = []

    def handler(event: EventEnvelope) -> None:
        seen.append(event.event_type)

    bus.subscribe("*", handler)
    bus.publish_dict("task.created", {"content_id": "c1"}, actor_id="editor-1")
    bus.unsubscribe("*", handler)
    bus.unsubscribe("*", handler)
    bus.publish_dict("task.assigned", {"content_id": "c1"})

    assert seen == ["task.created"]
    with Session(engine) as session:
        assert len(session.exec(select(EventRecord)).all()) == 2


def test_failing_handler_does_not_block_other_handlers() -> None:
    engine = create_engine("sqlite:///:memory:")
    SQLModel.metadata.create_all(engine)
    bus = EventBus(engine)
    seen: list[str] = []

    def broken(event: EventEnvelope) -> None:
        raise RuntimeError("listener down")

    bus.subscribe("task.assigned", broken)
    bus.subscribe("*", lambda event: seen.append(event.event_type))
    bus.publish_dict("task.assigned", {"content_id": "c1"})

    assert seen == ["task.assigned"]
    with Session(engine) as session:
        assert len(session.exec(select(EventRecord)).all()) == 1
