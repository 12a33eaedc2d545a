import unittest
from datetime import datetime, timedelta, timezone

from support import make_session_factory

from models import ApiKey, Project, ProjectUpvote
from services.errors import ConflictError, NotFoundError, ValidationError
from services.project_service import get_project, list_projects, submit_project, toggle_upvote
from services.tier import RateLimitError
from utils.common_helpers import clamp_int, parse_iso_datetime, sanitize_text

NOW = datetime(2026, 5, 4, 10, 0, tzinfo=timezone.utc)


class TestHelpers(unittest.TestCase):
    def test_sanitize_text(self):
        self.assertEqual(sanitize_text("  <b>Sonar</b>bot <script>x</script> "), "Sonarbot x")
        self.assertEqual(sanitize_text(None), "")
        self.assertEqual(sanitize_text(42), "")

    def test_clamp_int(self):
        self.assertEqual(clamp_int("500", 1, 100, 50), 100)
        self.assertEqual(clamp_int("0", 1, 100, 50), 1)
        self.assertEqual(clamp_int("abc", 1, 100, 50), 50)
        self.assertEqual(clamp_int(None, 0, 10, 0), 0)

    def test_parse_iso_datetime(self):
        self.assertEqual(parse_iso_datetime("2026-05-10T12:00:00Z"), datetime(2026, 5, 10, 12, tzinfo=timezone.utc))
        self.assertEqual(
            parse_iso_datetime("2026-05-10T14:00:00+02:00"),
            datetime(2026, 5, 10, 12, tzinfo=timezone.utc),
        )
        self.assertIsNone(parse_iso_datetime("next tuesday"))


class ProjectTestCase(unittest.TestCase):
    def setUp(self):
        self.db = make_session_factory()()

    def tearDown(self):
        self.db.close()

    def premium(self, handle):
        self.db.add(ApiKey(
            twitter_handle=handle,
            api_key="snr_" + handle.ljust(48, "0")[:48],
            subscription_tier="premium",
            subscription_expires=NOW + timedelta(days=30),
        ))
        self.db.commit()

    def seed(self, name, *, upvotes=0, created_at=NOW, scheduled_for=None, category="other", approved=True):
        project = Project(
            name=name,
            tagline=f"{name} tagline",
            submitted_by_twitter="seed",
            upvotes=upvotes,
            category=category,
            created_at=created_at,
            scheduled_for=scheduled_for,
            is_approved=approved,
        )
        self.db.add(project)
        self.db.commit()
        return project


class TestListProjects(ProjectTestCase):
    def setUp(self):
        super().setUp()
        self.old = self.seed("old", upvotes=9, created_at=NOW - timedelta(days=3), category="defi")
        self.new = self.seed("new", upvotes=2, created_at=NOW - timedelta(hours=1), category="agents")
        self.soon = self.seed("soon", scheduled_for=NOW + timedelta(days=2))
        self.later = self.seed("later", scheduled_for=NOW + timedelta(days=5))
        self.launched = self.seed("launched", upvotes=9, created_at=NOW - timedelta(days=1), scheduled_for=NOW - timedelta(hours=2))
        self.hidden = self.seed("hidden", approved=False)

    def names(self, **kwargs):
        return [p.name for p in list_projects(self.db, now=NOW, **kwargs)]

    def test_default_lists_live_newest_first(self):
        self.assertEqual(self.names(), ["new", "launched", "old"])

    def test_upcoming_by_launch_date(self):
        self.assertEqual(self.names(status="upcoming", sort="launch_date"), ["soon", "later"])

    def test_sorts(self):
        self.assertEqual(self.names(sort="upvotes")[-1], "new")
        self.assertEqual(self.names(sort="trending"), ["launched", "old", "new"])

    def test_category_filter(self):
        self.assertEqual(self.names(category="defi"), ["old"])
        self.assertEqual(len(self.names(category="all")), 3)

    def test_paging_is_clamped(self):
        self.assertEqual(self.names(limit="1"), ["new"])
        self.assertEqual(self.names(limit="1", offset="1"), ["launched"])
        self.assertEqual(len(self.names(limit="0")), 1)
        self.assertEqual(len(self.names(limit="9999")), 3)

    def test_get_project(self):
        self.assertEqual(get_project(self.db, self.old.id).name, "old")
        with self.assertRaises(NotFoundError):
            get_project(self.db, self.hidden.id)
        with self.assertRaises(NotFoundError):
            get_project(self.db, 999)


class TestSubmitProject(ProjectTestCase):
    def submit(self, handle="alice", **overrides):
        fields = dict(name="Sonar <i>Scope</i>", tagline="See agents coming", twitter_handle="@sonarscope")
        fields.update(overrides)
        return submit_project(self.db, handle, now=NOW, **fields)

    def test_submit_sanitizes_and_stores(self):
        project = self.submit(description="<p>Hello</p>")
        self.assertEqual(project.name, "Sonar Scope")
        self.assertEqual(project.description, "Hello")
        self.assertEqual(project.twitter_handle, "sonarscope")
        self.assertEqual(project.category, "other")
        self.assertEqual(project.submitted_by_twitter, "alice")
        self.assertIsNone(project.scheduled_for)

    def test_required_fields_after_sanitizing(self):
        with self.assertRaises(ValidationError) as ctx:
            self.submit(name="<b></b>")
        self.assertEqual(ctx.exception.message, "name and tagline are required")

    def test_category_checked(self):
        with self.assertRaises(ValidationError) as ctx:
            self.submit(category="memes")
        self.assertTrue(ctx.exception.message.startswith("Invalid category"))

    def test_scheduled_for(self):
        with self.assertRaises(ValidationError) as ctx:
            self.submit(scheduled_for="soon")
        self.assertEqual(ctx.exception.message, "scheduled_for must be a valid ISO timestamp")
        with self.assertRaises(ValidationError) as ctx:
            self.submit(scheduled_for="2026-05-01T00:00:00Z")
        self.assertEqual(ctx.exception.message, "scheduled_for must be in the future")

        project = self.submit(scheduled_for="2026-05-11T09:00:00Z")
        self.assertEqual(project.scheduled_for.replace(tzinfo=timezone.utc), datetime(2026, 5, 11, 9, tzinfo=timezone.utc))

    def test_free_plan_one_submission_per_week(self):
        self.submit()
        with self.assertRaises(RateLimitError):
            self.submit(name="Another")

    def test_duplicate_submission(self):
        self.premium("bob")
        self.submit(handle="bob")
        with self.assertRaises(ConflictError) as ctx:
            self.submit(handle="bob")
        self.assertEqual(ctx.exception.message, "You have already submitted this project")


class TestToggleUpvote(ProjectTestCase):
    def test_toggle(self):
        project = self.seed("p")
        added = toggle_upvote(self.db, "alice", project.id, now=NOW)
        self.assertEqual(added, {"success": True, "action": "added", "upvotes": 1})
        removed = toggle_upvote(self.db, "alice", project.id, now=NOW)
        self.assertEqual(removed, {"success": True, "action": "removed", "upvotes": 0})
        self.assertEqual(self.db.query(ProjectUpvote).count(), 0)

    def test_counter_never_negative(self):
        project = self.seed("p", upvotes=0)
        self.db.add(ProjectUpvote(project_id=project.id, twitter_handle="alice", created_at=NOW))
        self.db.commit()
        self.assertEqual(toggle_upvote(self.db, "alice", project.id, now=NOW)["upvotes"], 0)

    def test_unknown_project(self):
        with self.assertRaises(NotFoundError):
            toggle_upvote(self.db, "alice", 404, now=NOW)

    def test_daily_limit_only_applies_to_adding(self):
        projects = [self.seed(f"p{i}") for i in range(6)]
        for project in projects[:5]:
            toggle_upvote(self.db, "alice", project.id, now=NOW)
        with self.assertRaises(RateLimitError):
            toggle_upvote(self.db, "alice", projects[5].id, now=NOW)
        # removing still works at the limit
        self.assertEqual(toggle_upvote(self.db, "alice", projects[0].id, now=NOW)["action"], "removed")


if __name__ == "__main__":
    unittest.main()
