from __future__ import annotations

import asyncio
import threading
import time
from dataclasses import dataclass, field

from actions_notifier.identity_service import IdentityResolutionService
from actions_notifier.models import SlackIdentity


@dataclass
class _DummySlackDirectory:
    members: list[SlackIdentity]
    delay_seconds: float = 0.0
    calls: int = 0
    lock: threading.Lock = field(default_factory=threading.Lock)

    def list_all_users(self) -> list[SlackIdentity]:
        with self.lock:
            self.calls += 1
        time.sleep(self.delay_seconds)
        return list(self.members)


@dataclass
class _DummyGitHubDirectory:
    real_names: dict[str, str]
    failing: set[str] = field(default_factory=set)
    calls: list[str] = field(default_factory=list)

    def fetch_user_real_name(self, login: str) -> str:
        self.calls.append(login)
        if login in self.failing:
            raise RuntimeError(f"user lookup failed for {login}")
        return self.real_names.get(login, login)


def _service(
    slack: _DummySlackDirectory,
    github: _DummyGitHubDirectory,
    **kwargs,  # noqa: ANN003
) -> IdentityResolutionService:
    return IdentityResolutionService(slack_directory=slack, github_directory=github, **kwargs)


def _directory(**kwargs) -> _DummySlackDirectory:  # noqa: ANN003
    return _DummySlackDirectory(
        members=[
            SlackIdentity(id="U_ALICE", real_name="Alice Park", display_name="alice"),
            SlackIdentity(id="U_BOB", real_name="Bob Choi"),
            SlackIdentity(id="U_KIM1", real_name="Kim Minsu"),
            SlackIdentity(id="U_KIM2", real_name="Kim Minseo"),
        ],
        **kwargs,
    )


def test_resolve_one_returns_slack_id() -> None:
    github = _DummyGitHubDirectory(real_names={"alice-gh": "Alice Park"})
    service = _service(_directory(), github)

    assert asyncio.run(service.resolve_one("alice-gh")) == "U_ALICE"


def test_resolve_one_real_name_property_prefers_display_name() -> None:
    github = _DummyGitHubDirectory(real_names={"alice-gh": "Alice Park", "bob-gh": "Bob Choi"})
    service = _service(_directory(), github)

    async def _run() -> tuple[str, str]:
        return (
            await service.resolve_one("alice-gh", "realName"),
            await service.resolve_one("bob-gh", "realName"),
        )

    assert asyncio.run(_run()) == ("alice", "Bob Choi")


def test_unmatched_login_degrades_to_login_and_is_cached() -> None:
    github = _DummyGitHubDirectory(real_names={"ghost": "Nobody Here"})
    service = _service(_directory(), github)

    async def _run() -> list[str]:
        return [await service.resolve_one("ghost"), await service.resolve_one("ghost")]

    assert asyncio.run(_run()) == ["ghost", "ghost"]
    assert github.calls == ["ghost"]


def test_ambiguous_name_uses_priority_table() -> None:
    github = _DummyGitHubDirectory(real_names={"kim-gh": "Kim Mins"})
    service = _service(_directory(), github, name_priority={"Kim Mins": "Kim Minseo"})

    assert asyncio.run(service.resolve_one("kim-gh")) == "U_KIM2"


def test_ambiguous_name_without_priority_degrades_to_login() -> None:
    github = _DummyGitHubDirectory(real_names={"kim-gh": "Kim Mins"})
    service = _service(_directory(), github)

    assert asyncio.run(service.resolve_one("kim-gh")) == "kim-gh"


def test_upstream_failure_degrades_to_login() -> None:
    github = _DummyGitHubDirectory(real_names={}, failing={"broken"})
    service = _service(_directory(), github)

    assert asyncio.run(service.resolve_one("broken")) == "broken"


def test_directory_failure_degrades_every_login() -> None:
    @dataclass
    class _FailingDirectory:
        def list_all_users(self) -> list[SlackIdentity]:
            raise RuntimeError("slack down")

    github = _DummyGitHubDirectory(real_names={"alice-gh": "Alice Park"})
    service = _service(_FailingDirectory(), github)

    result = asyncio.run(service.resolve_batch(["alice-gh", "bob-gh"]))

    assert result == {"alice-gh": "alice-gh", "bob-gh": "bob-gh"}


def test_concurrent_resolutions_share_one_directory_load() -> None:
    slack = _directory(delay_seconds=0.05)
    github = _DummyGitHubDirectory(real_names={"alice-gh": "Alice Park", "bob-gh": "Bob Choi"})
    service = _service(slack, github)

    async def _run() -> list[str]:
        return await asyncio.gather(
            service.resolve_one("alice-gh"),
            service.resolve_one("alice-gh"),
            service.resolve_one("bob-gh"),
            service.resolve_one("alice-gh"),
        )

    assert asyncio.run(_run()) == ["U_ALICE", "U_ALICE", "U_BOB", "U_ALICE"]
    assert slack.calls == 1
    assert sorted(github.calls) == ["alice-gh", "bob-gh"]


def test_resolve_batch_dedupes_and_skips_empty_logins() -> None:
    github = _DummyGitHubDirectory(real_names={"alice-gh": "Alice Park", "bob-gh": "Bob Choi"})
    service = _service(_directory(), github)

    result = asyncio.run(service.resolve_batch(["alice-gh", "", "bob-gh", "alice-gh"]))

    assert result == {"alice-gh": "U_ALICE", "bob-gh": "U_BOB"}
    assert list(result) == ["alice-gh", "bob-gh"]


def test_empty_login_is_returned_unchanged() -> None:
    service = _service(_directory(), _DummyGitHubDirectory(real_names={}))

    assert asyncio.run(service.resolve_one("")) == ""


def test_clear_cache_forces_directory_reload() -> None:
    slack = _directory()
    github = _DummyGitHubDirectory(real_names={"alice-gh": "Alice Park"})
    service = _service(slack, github)

    asyncio.run(service.resolve_one("alice-gh"))
    assert service.cache_stats()["directory_loaded"] is True
    assert service.cache_stats()["resolved_entries"] == 1

    service.clear_cache()
    assert service.cache_stats()["directory_loaded"] is False
    asyncio.run(service.resolve_one("alice-gh"))

    assert slack.calls == 2
    assert github.calls == ["alice-gh", "alice-gh"]


def test_skip_users_are_never_resolved() -> None:
    slack = _DummySlackDirectory(members=[SlackIdentity(id="U_JOHN", real_name="john (이주호)")])
    github = _DummyGitHubDirectory(real_names={"john-gh": "John"})
    service = _service(slack, github, skip_users=["john (이주호)"])

    assert asyncio.run(service.resolve_one("john-gh")) == "john-gh"
