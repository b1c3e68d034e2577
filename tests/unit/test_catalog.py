"""
Unit tests for the catalog repositories and the feed service,
running against the in-memory document database.
"""

import pytest
from bson import ObjectId

from src.core.errors import Conflict, UserNotFound, VideoNotFound
from src.core.media.feed import ANONYMOUS, FeedService, normalize_media_url
from src.core.media.models import ProfileChanges, Role
from src.infrastructure.mongo.repositories import (
    CommentRepository,
    UserRepository,
    VideoRepository,
)


@pytest.fixture
def users(database) -> UserRepository:
    repository = UserRepository(database)
    repository.ensure_indexes()
    return repository


@pytest.fixture
def videos(database) -> VideoRepository:
    return VideoRepository(database)


@pytest.fixture
def comments(database) -> CommentRepository:
    return CommentRepository(database)


@pytest.fixture
def feed(videos, comments, users) -> FeedService:
    return FeedService(videos=videos, comments=comments, authors=users)


class FailingDirectory:
    def get_display_names(self, user_ids):
        raise RuntimeError("users collection unavailable")


# ---------------------------------------------------------------------------
# Users
# ---------------------------------------------------------------------------

class TestUserRepository:
    """Account persistence and the email uniqueness rule."""

    def test_create_and_fetch(self, users):
        created = users.create_user("ana", "Ana@Example.com", "hash", Role.ADMIN)

        fetched = users.get_by_id(created.id)

        assert fetched.email == "ana@example.com"
        assert fetched.role == Role.ADMIN
        assert fetched.avatar_url is None

    def test_duplicate_email_conflicts_ignoring_case(self, users):
        users.create_user("ana", "ana@example.com", "hash")

        with pytest.raises(Conflict, match="Email is already registered"):
            users.create_user("other", " ANA@example.com ", "hash")

    def test_get_by_email_is_case_insensitive(self, users):
        users.create_user("ana", "ana@example.com", "hash")
        assert users.get_by_email("ANA@EXAMPLE.COM").username == "ana"

    def test_unknown_email_returns_none(self, users):
        assert users.get_by_email("nobody@example.com") is None

    @pytest.mark.parametrize("user_id", [str(ObjectId()), "not-an-id"])
    def test_unknown_id_is_not_found(self, users, user_id):
        with pytest.raises(UserNotFound):
            users.get_by_id(user_id)

    def test_partial_update_keeps_other_fields(self, users):
        user = users.create_user("ana", "ana@example.com", "hash")

        updated = users.update_profile(user.id, ProfileChanges(bio="Swims daily"))

        assert updated.bio == "Swims daily"
        assert updated.username == "ana"
        assert updated.email == "ana@example.com"
        assert updated.updated_at >= user.updated_at

    def test_email_availability(self, users):
        ana = users.create_user("ana", "ana@example.com", "hash")
        bob = users.create_user("bob", "bob@example.com", "hash")

        users.ensure_email_available("free@example.com", ana.id)
        users.ensure_email_available("ANA@example.com", ana.id)
        with pytest.raises(Conflict):
            users.ensure_email_available(" Bob@Example.com", ana.id)
        users.ensure_email_available("bob@example.com", bob.id)

    def test_update_to_taken_email_conflicts(self, users):
        users.create_user("ana", "ana@example.com", "hash")
        bob = users.create_user("bob", "bob@example.com", "hash")

        with pytest.raises(Conflict):
            users.update_profile(bob.id, ProfileChanges(email="ANA@example.com"))

    def test_update_to_own_email_is_allowed(self, users):
        ana = users.create_user("ana", "ana@example.com", "hash")

        updated = users.update_profile(ana.id, ProfileChanges(email="Ana@Example.com"))

        assert updated.email == "ana@example.com"

    def test_display_names_skip_unknown_ids(self, users):
        ana = users.create_user("ana", "ana@example.com", "hash")

        names = users.get_display_names([ana.id, str(ObjectId()), "garbage"])

        assert names == {ana.id: "ana"}


# ---------------------------------------------------------------------------
# Videos and Comments
# ---------------------------------------------------------------------------

class TestVideoRepository:
    def test_videos_list_oldest_first(self, videos):
        first = videos.create_video("First", "", "https://cdn/1.mp4")
        second = videos.create_video("Second", "", "https://cdn/2.mp4")

        assert [v.id for v in videos.list_videos()] == [first.id, second.id]

    def test_titles_need_not_be_unique(self, videos):
        videos.create_video("Same", "", "https://cdn/1.mp4")
        videos.create_video("Same", "", "https://cdn/2.mp4")

        assert len(videos.list_videos()) == 2

    def test_detail_with_no_comments(self, videos):
        video = videos.create_video("Intro", "#a", "https://cdn/1.mp4")

        loaded, loaded_comments = videos.get_video_with_comments(video.id)

        assert loaded.title == "Intro"
        assert loaded_comments == []

    @pytest.mark.parametrize("video_id", [str(ObjectId()), "not-an-id"])
    def test_unknown_video_is_not_found(self, videos, video_id):
        with pytest.raises(VideoNotFound):
            videos.get_video_with_comments(video_id)


class TestCommentRepository:
    def test_comment_on_existing_video(self, videos, comments):
        video = videos.create_video("Intro", "", "https://cdn/1.mp4")
        author = str(ObjectId())

        comment = comments.add_comment(video.id, author, "Nice")

        assert comment.video_id == video.id
        assert comment.user_id == author
        assert [c.id for c in comments.list_for_video(video.id)] == [comment.id]

    @pytest.mark.parametrize("video_id", [str(ObjectId()), "not-an-id"])
    def test_comment_on_unknown_video_is_refused(self, comments, video_id):
        with pytest.raises(VideoNotFound):
            comments.add_comment(video_id, str(ObjectId()), "Nice")

        assert comments.list_for_video(video_id) == []


# ---------------------------------------------------------------------------
# Feed
# ---------------------------------------------------------------------------

class TestFeedService:
    """Denormalized views: videos, their comments, and author names."""

    def test_feed_attaches_comments_with_author_names(self, feed, users, videos, comments):
        ana = users.create_user("ana", "ana@example.com", "hash")
        first = videos.create_video("First", "", "https://cdn/1.mp4")
        videos.create_video("Second", "", "https://cdn/2.mp4")
        comments.add_comment(first.id, ana.id, "Nice")

        views = feed.list_feed()

        assert [v.video.title for v in views] == ["First", "Second"]
        assert [c.author_name for c in views[0].comments] == ["ana"]
        assert views[1].comments == []

    def test_unknown_author_is_anonymous(self, feed, videos, comments):
        video = videos.create_video("Intro", "", "https://cdn/1.mp4")
        comments.add_comment(video.id, str(ObjectId()), "Who am I")

        view = feed.get_video_detail(video.id)

        assert [c.author_name for c in view.comments] == [ANONYMOUS]

    def test_author_lookup_failure_degrades_to_anonymous(self, videos, comments, users):
        ana = users.create_user("ana", "ana@example.com", "hash")
        video = videos.create_video("Intro", "", "https://cdn/1.mp4")
        comments.add_comment(video.id, ana.id, "Nice")
        feed = FeedService(videos=videos, comments=comments, authors=FailingDirectory())

        view = feed.get_video_detail(video.id)

        assert [c.author_name for c in view.comments] == [ANONYMOUS]

    def test_detail_comments_are_chronological(self, feed, users, videos, comments):
        ana = users.create_user("ana", "ana@example.com", "hash")
        video = videos.create_video("Intro", "", "https://cdn/1.mp4")
        comments.add_comment(video.id, ana.id, "first")
        comments.add_comment(video.id, ana.id, "second")

        view = feed.get_video_detail(video.id)

        assert [c.comment.text for c in view.comments] == ["first", "second"]

    def test_detail_of_unknown_video(self, feed):
        with pytest.raises(VideoNotFound):
            feed.get_video_detail(str(ObjectId()))

    def test_relative_url_is_made_absolute(self, feed, videos):
        video = videos.create_video("Intro", "", "/media/intro.mp4")

        view = feed.get_video_detail(video.id, base_url="http://testserver/")

        assert view.video.url == "http://testserver/media/intro.mp4"


class TestNormalizeMediaUrl:
    def test_absolute_url_is_unchanged(self):
        url = "https://cdn.example.com/videos/a.mp4"
        assert normalize_media_url(url, "http://testserver/") == url

    def test_without_base_url_nothing_changes(self):
        assert normalize_media_url("/media/a.mp4", None) == "/media/a.mp4"
