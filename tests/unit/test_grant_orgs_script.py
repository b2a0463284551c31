import pytest

from ding.scripts import grant_orgs as script


@pytest.fixture()
def wired(monkeypatch, user_repo, make_user):
	user_repo.add(make_user("alice", usr_id=1, orgs_r=["news"]))

	async def fake_pool():
		return object()

	async def noop(*_args, **_kwargs):
		return None

	monkeypatch.setattr(script, "get_pool", fake_pool)
	monkeypatch.setattr(script, "close_pool", noop)
	monkeypatch.setattr(script, "ensure_schema", noop)
	monkeypatch.setattr(script, "UserRepository", lambda _pool: user_repo)
	return user_repo


def test_write_grant_implies_read(wired, capsys):
	script.main(["alice", "--write", "*Acme"])
	user = wired.users[1]
	assert user.orgs_w == ["acme"]
	assert user.orgs_r == ["acme", "news"]
	assert "read=acme,news write=acme" in capsys.readouterr().out


def test_revoke_removes_only_named_orgs(wired):
	script.main(["alice", "--read", "acme", "--write", "acme"])
	script.main(["alice", "--write", "acme", "--revoke"])
	user = wired.users[1]
	assert user.orgs_w == []
	assert user.orgs_r == ["acme", "news"]


def test_unknown_user_and_missing_flags_exit(wired):
	with pytest.raises(SystemExit):
		script.main(["ghost", "--read", "acme"])
	with pytest.raises(SystemExit):
		script.main(["alice"])
