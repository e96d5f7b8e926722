"""
Tests for the next-gen upgrade registry and the legacy build registry.
"""
import pytest

from apsim_builds.errors import ConflictError, InvalidError, NotFoundError


class TestUpgradeRegistry:
    """Test suite for UpgradeRegistry."""

    def test_insert(self, upgrade_registry):
        upgrade = upgrade_registry.insert(1234, 500, "Wheat yield is too high", "https://github.com/x/1234")
        assert upgrade.id is not None
        assert upgrade.revision == 1
        assert upgrade.issue_number == 1234
        assert upgrade.pull_request_number == 500
        assert upgrade.issue_title == "Wheat yield is too high"
        assert upgrade.released is False
        assert upgrade.release_date is not None

    def test_insert_defaults(self, upgrade_registry):
        upgrade = upgrade_registry.insert(1, 2)
        assert upgrade.issue_title == ""
        assert upgrade.issue_url == ""

    def test_revisions_increase_in_insertion_order(self, upgrade_registry):
        revisions = [upgrade_registry.insert(n, 100 + n).revision for n in range(5)]
        assert revisions == [1, 2, 3, 4, 5]

    def test_latest_and_next_revision(self, upgrade_registry):
        assert upgrade_registry.latest_revision() == 0
        assert upgrade_registry.next_revision() == 1
        upgrade_registry.insert(1, 10)
        upgrade_registry.insert(2, 11)
        assert upgrade_registry.latest_revision() == 2
        assert upgrade_registry.next_revision() == 3

    def test_same_pull_request_registered_twice(self, upgrade_registry):
        """Test re-registering a pull request creates a new revision."""
        first = upgrade_registry.insert(1, 10)
        second = upgrade_registry.insert(1, 10)
        assert (first.revision, second.revision) == (1, 2)
        assert upgrade_registry.find_by_pull_request(10).id == second.id

    def test_list_newest_first(self, upgrade_registry):
        for n in range(3):
            upgrade_registry.insert(n, 100 + n)
        assert [u.revision for u in upgrade_registry.list()] == [3, 2, 1]

    def test_list_limit(self, upgrade_registry):
        for n in range(5):
            upgrade_registry.insert(n, 100 + n)
        assert [u.revision for u in upgrade_registry.list(limit=2)] == [5, 4]

    def test_list_unlimited(self, upgrade_registry):
        for n in range(3):
            upgrade_registry.insert(n, 100 + n)
        assert len(upgrade_registry.list(limit=None)) == 3

    def test_list_limit_zero(self, upgrade_registry):
        """Test an explicit zero limit returns no upgrades."""
        for n in range(3):
            upgrade_registry.insert(n, 100 + n)
        assert upgrade_registry.list(limit=0) == []
        assert upgrade_registry.list(limit=0, min_revision=1) == []

    def test_list_limit_larger_than_matches(self, upgrade_registry):
        for n in range(3):
            upgrade_registry.insert(n, 100 + n)
        assert [u.revision for u in upgrade_registry.list(limit=10, min_revision=1)] == [3, 2]

    def test_list_negative_limit(self, upgrade_registry):
        with pytest.raises(InvalidError):
            upgrade_registry.list(limit=-1)

    def test_list_min_revision(self, upgrade_registry):
        """Test min_revision is exclusive and applied before the limit."""
        for n in range(5):
            upgrade_registry.insert(n, 100 + n)
        assert [u.revision for u in upgrade_registry.list(min_revision=3)] == [5, 4]
        assert [u.revision for u in upgrade_registry.list(limit=1, min_revision=2)] == [5]
        assert len(upgrade_registry.list(min_revision=-1)) == 5
        assert upgrade_registry.list(min_revision=5) == []

    def test_list_empty(self, upgrade_registry):
        assert upgrade_registry.list() == []

    def test_find_by_revision(self, upgrade_registry):
        upgrade_registry.insert(1, 10)
        upgrade_registry.insert(2, 20)
        assert upgrade_registry.find_by_revision(2).pull_request_number == 20

    def test_find_by_revision_missing(self, upgrade_registry):
        with pytest.raises(NotFoundError, match="revision number 7"):
            upgrade_registry.find_by_revision(7)

    def test_find_by_pull_request_missing(self, upgrade_registry):
        with pytest.raises(NotFoundError):
            upgrade_registry.find_by_pull_request(10)

    def test_mark_released(self, upgrade_registry):
        upgrade = upgrade_registry.insert(1, 10)
        released = upgrade_registry.mark_released(10)
        assert released.id == upgrade.id
        assert released.released is True
        assert released.release_date >= upgrade.release_date

    def test_mark_released_latest_only(self, upgrade_registry):
        """Test only the most recent upgrade of a pull request is released."""
        first = upgrade_registry.insert(1, 10)
        second = upgrade_registry.insert(1, 10)
        upgrade_registry.mark_released(10)

        by_revision = {u.revision: u for u in upgrade_registry.list()}
        assert by_revision[second.revision].released is True
        assert by_revision[first.revision].released is False

    def test_mark_released_missing(self, upgrade_registry):
        with pytest.raises(NotFoundError):
            upgrade_registry.mark_released(10)


class TestBuildRegistry:
    """Test suite for the legacy BuildRegistry."""

    @pytest.fixture
    def build(self, build_registry):
        return build_registry.insert("hol353", "Wheat yield is too high", 1234, jenkins_id=88, pull_request_id=500)

    def test_insert(self, build):
        assert build.id is not None
        assert build.author == "hol353"
        assert build.bug_id == 1234
        assert build.jenkins_id == 88
        assert build.pull_request_id == 500
        assert build.passed is None
        assert build.finish_time is None
        assert build.revision_number is None
        assert build.start_time is not None

    def test_get(self, build_registry, build):
        assert build_registry.get(build.id).title == "Wheat yield is too high"

    def test_get_missing(self, build_registry):
        with pytest.raises(NotFoundError):
            build_registry.get(42)

    def test_update_result(self, build_registry, build):
        updated = build_registry.update_result(build.id, True)
        assert updated.passed is True
        assert updated.finish_time is not None

    def test_update_result_missing(self, build_registry):
        with pytest.raises(NotFoundError):
            build_registry.update_result(42, False)

    def test_set_num_diffs(self, build_registry, build):
        assert build_registry.set_num_diffs(build.id, 17).num_diffs == 17

    def test_set_num_diffs_missing(self, build_registry):
        with pytest.raises(NotFoundError):
            build_registry.set_num_diffs(42, 1)

    def test_set_revision(self, build_registry, build):
        assert build_registry.set_revision(500, 3500).revision_number == 3500
        assert build_registry.latest_revision() == 3500

    def test_set_revision_latest_build_of_pull_request(self, build_registry, build):
        rebuild = build_registry.insert("hol353", "Wheat yield is too high", 1234, jenkins_id=89, pull_request_id=500)
        assert build_registry.set_revision(500, 3500).id == rebuild.id
        assert build_registry.get(build.id).revision_number is None

    def test_set_revision_unknown_pull_request(self, build_registry):
        with pytest.raises(NotFoundError):
            build_registry.set_revision(999, 1)

    def test_set_revision_taken(self, build_registry, build):
        """Test a revision held by another build is rejected and nothing changes."""
        other = build_registry.insert("par456", "Refactor soil water", 77, jenkins_id=90, pull_request_id=501)
        build_registry.set_revision(500, 3500)

        with pytest.raises(ConflictError, match="3500"):
            build_registry.set_revision(501, 3500)

        assert build_registry.get(build.id).revision_number == 3500
        assert build_registry.get(other.id).revision_number is None

    def test_set_same_revision_again(self, build_registry, build):
        build_registry.set_revision(500, 3500)
        assert build_registry.set_revision(500, 3500).revision_number == 3500

    def test_set_revision_twice(self, build_registry, build):
        """Test a build's revision is assigned at most once."""
        build_registry.set_revision(500, 3500)
        with pytest.raises(ConflictError):
            build_registry.set_revision(500, 3501)
        assert build_registry.get(build.id).revision_number == 3500

    def test_latest_revision_empty(self, build_registry):
        assert build_registry.latest_revision() == 0

    def test_list(self, build_registry):
        """Test only passing builds with a revision are listed, newest revision first."""
        for pull, (passed, revision) in enumerate([(True, 10), (False, 11), (True, 12), (True, None)], start=600):
            build = build_registry.insert("a", "t", 1, jenkins_id=pull, pull_request_id=pull)
            build_registry.update_result(build.id, passed)
            if revision is not None:
                build_registry.set_revision(pull, revision)

        assert [b.revision_number for b in build_registry.list()] == [12, 10]
        assert [b.revision_number for b in build_registry.list(limit=1)] == [12]
        assert build_registry.list(limit=0) == []
