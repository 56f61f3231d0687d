"""Integration tests for the cafe approver classifier against a real sqlite database."""
import tempfile
from unittest.mock import AsyncMock, MagicMock

import pytest

from cafemod.db.connection import run_migrations
from cafemod.errors import PlaceLookupError
from cafemod.models.submission import Cafe, PlaceDetails, Submission
from cafemod.repositories.submission_repository import SubmissionRepository
from cafemod.services.classifier import CafeApproverClassifier
from cafemod.services.llm_evaluator import LlmDecision

BASE_LAT, BASE_LNG = 37.7763, -122.4232


@pytest.fixture
def db_path():
    with tempfile.NamedTemporaryFile(suffix=".db", delete=False) as f:
        path = f.name
    run_migrations(path)
    return path


@pytest.fixture
def repo(db_path):
    return SubmissionRepository(db_path)


def _link(slug):
    return f"https://www.google.com/maps/place/{slug}/@{BASE_LAT},{BASE_LNG},17z"


def _submit(repo, name, link, lat=BASE_LAT, lng=BASE_LNG):
    return repo.insert(Submission(name=name, google_maps_link=link, latitude=lat, longitude=lng))


def _lookup(places):
    """Lookup whose answer depends on the link; exceptions in `places` are raised."""

    def resolve(url):
        outcome = places[url]
        if isinstance(outcome, Exception):
            raise outcome
        return outcome

    lookup = MagicMock()
    lookup.lookup = AsyncMock(side_effect=resolve)
    return lookup


def _evaluator(approve=True, configured=True):
    evaluator = MagicMock()
    evaluator.configured = configured
    evaluator.evaluate = AsyncMock(return_value=LlmDecision(approve=approve, reasoning="because"))
    return evaluator


def _classifier(repo, lookup, evaluator=None, dry_run=False):
    return CafeApproverClassifier(
        repo,
        lookup,
        evaluator or _evaluator(),
        dry_run=dry_run,
        submission_pause=0,
        sleep=AsyncMock(),
    )


def _place(name, lat=BASE_LAT, lng=BASE_LNG):
    return PlaceDetails(name=name, address="1 Main St", latitude=lat, longitude=lng)


@pytest.mark.asyncio
async def test_clear_match_creates_cafe_and_approves(repo):
    sid = _submit(repo, "Blue Bottle", _link("Blue+Bottle"), lat=BASE_LAT + 0.0003)
    classifier = _classifier(repo, _lookup({_link("Blue+Bottle"): _place("Blue Bottle Coffee")}))

    batch = await classifier.classify(limit=20, verbose=True)

    assert (batch.total_processed, batch.approved, batch.errors) == (1, 1, 0)
    assert batch.remaining == 0
    stored = repo.get(sid)
    assert stored.status == "approved"
    assert stored.approved_cafe_id == batch.results[0].cafe_id
    assert stored.approved_cafe_id is not None


@pytest.mark.asyncio
async def test_existing_nearby_cafe_is_linked_not_duplicated(repo):
    cafe_id = repo.create_cafe(Cafe(name="Blue Bottle", latitude=BASE_LAT, longitude=BASE_LNG))
    sid = _submit(repo, "Blue Bottle", _link("Blue+Bottle"))
    classifier = _classifier(repo, _lookup({_link("Blue+Bottle"): _place("Blue Bottle Coffee")}))

    batch = await classifier.classify(limit=20, verbose=False)

    assert batch.approved == 1
    assert repo.get(sid).approved_cafe_id == cafe_id
    assert len(repo.find_cafes_in_box(BASE_LAT, BASE_LNG, 200)) == 1


@pytest.mark.asyncio
async def test_invalid_link_mismatch_and_lookup_failure(repo):
    bad = _submit(repo, "Somewhere", "https://example.com/not-maps")
    mismatch = _submit(repo, "Philz", _link("Sightglass"))
    unreachable = _submit(repo, "Ghost", _link("Ghost"))
    lookup = _lookup({
        _link("Sightglass"): _place("Sightglass"),
        _link("Ghost"): PlaceLookupError("failed after 3 attempts: timeout"),
    })
    evaluator = _evaluator()

    batch = await _classifier(repo, lookup, evaluator).classify(limit=20, verbose=False)

    assert batch.total_processed == 3
    assert (batch.rejected, batch.flagged, batch.errors) == (2, 1, 0)
    assert repo.get(bad).status == "rejected"
    assert repo.get(mismatch).status == "rejected"
    assert repo.get(unreachable).status == "flagged"
    assert "Place lookup failed" in repo.get(unreachable).review_notes
    evaluator.evaluate.assert_not_awaited()


@pytest.mark.asyncio
@pytest.mark.parametrize("approve,status", [(True, "approved"), (False, "flagged")])
async def test_borderline_goes_to_llm(repo, approve, status):
    # same name, pin about 220 m away
    sid = _submit(repo, "Ritual", _link("Ritual"), lat=BASE_LAT + 0.002)
    evaluator = _evaluator(approve=approve)
    classifier = _classifier(repo, _lookup({_link("Ritual"): _place("Ritual")}), evaluator)

    batch = await classifier.classify(limit=20, verbose=False)

    evaluator.evaluate.assert_awaited_once()
    assert batch.external_call_count == 1
    assert batch.results[0].used_llm is True
    assert batch.results[0].action == status
    assert repo.get(sid).status == status


@pytest.mark.asyncio
async def test_unconfigured_llm_is_not_counted_as_external_call(repo):
    _submit(repo, "Ritual", _link("Ritual"), lat=BASE_LAT + 0.002)
    evaluator = _evaluator(approve=False, configured=False)
    classifier = _classifier(repo, _lookup({_link("Ritual"): _place("Ritual")}), evaluator)

    batch = await classifier.classify(limit=20, verbose=False)

    assert batch.flagged == 1
    assert batch.external_call_count == 0


@pytest.mark.asyncio
async def test_unexpected_error_is_counted_and_never_retried(repo):
    sid = _submit(repo, "Broken", _link("Broken"))
    ok = _submit(repo, "Blue Bottle", _link("Blue+Bottle"))
    lookup = _lookup({
        _link("Broken"): RuntimeError("parser exploded"),
        _link("Blue+Bottle"): _place("Blue Bottle"),
    })
    classifier = _classifier(repo, lookup)

    batch = await classifier.classify(limit=20, verbose=False)

    assert (batch.total_processed, batch.approved, batch.errors) == (2, 1, 1)
    assert batch.results[0].action == "error"
    assert repo.get(sid).status == "flagged"
    assert repo.get(ok).status == "approved"

    again = await classifier.classify(limit=20, verbose=False)
    assert again.total_processed == 0
    assert lookup.lookup.await_count == 2


@pytest.mark.asyncio
async def test_limit_bounds_the_batch_and_remaining_is_reported(repo):
    links = {}
    for i in range(5):
        slug = f"Cafe+{i}"
        _submit(repo, f"Cafe {i}", _link(slug))
        links[_link(slug)] = _place(f"Cafe {i}")
    classifier = _classifier(repo, _lookup(links))

    first = await classifier.classify(limit=3, verbose=False)
    second = await classifier.classify(limit=3, verbose=False)

    assert (first.total_processed, first.remaining) == (3, 2)
    assert (second.total_processed, second.remaining) == (2, 0)


@pytest.mark.asyncio
async def test_dry_run_writes_nothing(repo):
    sid = _submit(repo, "Blue Bottle", _link("Blue+Bottle"))
    classifier = _classifier(repo, _lookup({_link("Blue+Bottle"): _place("Blue Bottle")}), dry_run=True)

    batch = await classifier.classify(limit=20, verbose=True)

    assert batch.approved == 1
    assert batch.results[0].cafe_id is None
    assert batch.remaining is None
    assert repo.get(sid).status == "pending"
    assert repo.find_cafes_in_box(BASE_LAT, BASE_LNG, 200) == []


@pytest.mark.asyncio
async def test_queue_read_failure_is_systemic():
    repo = MagicMock()
    repo.fetch_pending.side_effect = OSError("database is locked")
    classifier = _classifier(repo, _lookup({}))
    with pytest.raises(OSError):
        await classifier.classify(limit=20, verbose=False)
