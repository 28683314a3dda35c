from __future__ import annotations

import json
import logging
import os
from datetime import datetime

from fastapi import Depends, FastAPI, HTTPException, Query, Request
from pydantic import BaseModel, Field
from starlette.middleware.sessions import SessionMiddleware

from .admin.bulk import BulkRegisterResponse, NoValidUsers, bulk_register
from .analytics.aggregator import compute_usage_report
from .analytics.store import delete_user_usage, get_usage, record_api_usage
from .auth.dependencies import require_admin, require_user
from .auth.models import LoginRequest, NewUserRequest
from .auth.users import (
    DuplicateUser,
    InvalidPassword,
    UserNotFound,
    authenticate,
    create_user,
    delete_user,
    get_user,
    search_users,
)
from .chat import history as chat_history
from .chat.models import ChatHistory, ChatMessage, ChatRequest, ChatResponse, RecommendedRestaurant
from .favorites import store
from .favorites.cache import get_cache_stats
from .favorites.models import (
    FavoritesViewResponse,
    FavoriteUpdateResponse,
    Restaurant,
    RestaurantCreate,
    RestaurantUpdate,
    ShareFilters,
    SortField,
    SortKey,
    SortOrder,
    ViewMode,
    ViewStateUpdate,
)
from .favorites.pipeline import derive_list, group_by_area, set_sort_order, toggle_sort
from .favorites.reconcile import FavoritesView, ViewSource, drop_view, drop_views, get_view, invalidate_owner
from .favorites.service import (
    IncompleteRestaurant,
    add_favorite,
    locate_restaurant,
    restaurant_data_from_form,
    restaurant_data_from_search,
)
from .llm.groq_client import IntroOutcome, IntroSubject, recommend_from_favorites, write_restaurant_intro
from .search.geocoding import GeocodingError
from .search.hotpepper import PREFECTURE_TO_LARGE_AREA, HotpepperClient, HotpepperError
from .search.models import Area, Genre, SearchQuery, SearchResponse, SearchResult
from .search.orchestrator import (
    Provider,
    SearchSession,
    current_session,
    end_session,
    is_current,
    start_session,
)
from .search.web_search import search_web
from .sharing.store import (
    ShareExpired,
    ShareNotFound,
    create_share,
    delete_user_shares,
    resolve_share,
    shared_restaurants,
)
from .social import follows, notifications
from .social.models import FollowCounts, MarkReadRequest, Notification, TimelineEntry, UserProfile

logger = logging.getLogger(__name__)

app = FastAPI(title="Gourmet Log API", version="1.0.0")
app.add_middleware(
    SessionMiddleware,
    secret_key=os.environ.get("SESSION_SECRET", "gourmet-log-secret-change-in-production"),
)

hotpepper = HotpepperClient()


class AddFavoriteRequest(BaseModel):
    result: SearchResult


class PageRequest(BaseModel):
    page: int = Field(..., ge=1)


class SortOrderRequest(BaseModel):
    order: SortOrder


class IntroResponse(BaseModel):
    comment: str


class ShareResponse(BaseModel):
    id: str
    owner: UserProfile
    created_at: datetime
    expires_at: datetime
    filters: ShareFilters | None = None


# ── Helpers ──────────────────────────────────────────────────────────────


def _profile(user_id: str) -> UserProfile:
    user = get_user(user_id)
    return UserProfile(id=user["id"], username=user["username"], display_name=user["display_name"])


def _view_response(view: FavoritesView, rendered: list[Restaurant] | None = None) -> FavoritesViewResponse:
    restaurants = view.restaurants() if rendered is None else rendered
    return FavoritesViewResponse(
        restaurants=restaurants,
        sidebar_filters=view.sidebar_filters,
        genre_filters=view.genre_filters,
        sort=view.sort,
        view=view.view,
        all_genres=view.genres(),
        pending_geocode=sorted(view.pending_geocode),
        read_only=view.source.read_only,
    )


def _own_view(user: dict) -> FavoritesView:
    return get_view(user["id"], ViewSource(owner_id=user["id"]))


def _followed_view(user: dict, owner_id: str) -> FavoritesView:
    try:
        get_user(owner_id)
    except UserNotFound as exc:
        raise HTTPException(status_code=404, detail=str(exc)) from exc
    if not follows.can_view(user["id"], owner_id):
        raise HTTPException(status_code=403, detail="Follow this user to see their favorites")
    return get_view(user["id"], ViewSource(owner_id=owner_id, read_only=owner_id != user["id"]))


def _primary_search(query: SearchQuery) -> list[SearchResult]:
    return hotpepper.search(query)


def _fallback_search_for(user_id: str) -> Provider:
    def run(query: SearchQuery) -> list[SearchResult]:
        outcome = search_web(query)
        record_api_usage(user_id, "groq-web-search", outcome.input_tokens or 0, outcome.output_tokens or 0)
        return outcome.results
    return run


def _search_response(user_id: str, session: SearchSession) -> SearchResponse:
    response = session.to_response()
    if not is_current(user_id, session):
        # A newer search owns the screen; late results are dropped.
        response.superseded = True
        response.results = []
        response.primary_count = response.fallback_count = 0
    return response


def _save_favorite(user: dict, data: dict) -> Restaurant:
    try:
        restaurant = add_favorite(user["id"], data)
    except IncompleteRestaurant as exc:
        raise HTTPException(status_code=422, detail=str(exc)) from exc
    invalidate_owner(user["id"])
    follows.notify_new_favorite(user["id"], restaurant.id)
    return restaurant


def _apply_update(user: dict, restaurant_id: str, changes: dict) -> FavoriteUpdateResponse:
    """Patch the rendered list first, then confirm against the store.

    The response carries the patched list as rendered: the edited card stays
    where it was until the next read re-derives.
    """
    view = _own_view(user)
    view.restaurants()
    view.patch(restaurant_id, changes)
    try:
        updated = store.update_restaurant(restaurant_id, user["id"], changes)
    except store.RestaurantNotFound as exc:
        raise HTTPException(status_code=404, detail=str(exc)) from exc
    except store.PermissionDenied as exc:
        raise HTTPException(status_code=403, detail=str(exc)) from exc
    invalidate_owner(user["id"])
    return FavoriteUpdateResponse(restaurant=updated, view=_view_response(view, view.current()))


def _intro_response(user: dict, outcome: IntroOutcome) -> IntroResponse:
    if outcome.input_tokens is not None:
        record_api_usage(user["id"], "groq-analyze-restaurant", outcome.input_tokens, outcome.output_tokens or 0)
    if not outcome.comment:
        raise HTTPException(status_code=502, detail="Could not write an introduction for this restaurant")
    return IntroResponse(comment=outcome.comment)


def _parse_sort(values: list[str]) -> list[SortKey]:
    keys: list[SortKey] = []
    for value in values:
        field, _, order = value.partition(":")
        try:
            keys.append(SortKey(by=SortField(field), order=SortOrder(order or "asc")))
        except ValueError as exc:
            raise HTTPException(status_code=422, detail=f"Invalid sort key: {value}") from exc
    return keys


# ── Public endpoints ─────────────────────────────────────────────────────


@app.get("/health")
def health() -> dict[str, str]:
    return {"status": "ok"}


# ── Auth endpoints ───────────────────────────────────────────────────────


@app.post("/auth/login")
def login(body: LoginRequest, request: Request) -> dict:
    user = authenticate(body.login, body.password)
    if not user:
        raise HTTPException(status_code=401, detail="Invalid credentials")
    request.session["user"] = user
    return {"status": "ok", "user": user}


@app.post("/auth/logout")
def logout(request: Request) -> dict:
    request.session.clear()
    return {"status": "logged_out"}


@app.get("/auth/me")
def auth_me(user: dict = Depends(require_user)) -> dict:
    return user


@app.delete("/account")
def delete_account(request: Request, user: dict = Depends(require_user)) -> dict:
    uid = user["id"]
    removed = store.delete_user_restaurants(uid)
    delete_user_shares(uid)
    follows.delete_user_relationships(uid)
    notifications.delete_user_notifications(uid)
    chat_history.delete_user_histories(uid)
    delete_user_usage(uid)
    drop_views(uid)
    end_session(uid)
    try:
        delete_user(uid)
    except UserNotFound as exc:
        raise HTTPException(status_code=404, detail=str(exc)) from exc
    request.session.clear()
    logger.info("Deleted account %s (%d favorites)", uid, removed)
    return {"status": "deleted"}


# ── Favorites ────────────────────────────────────────────────────────────


@app.get("/favorites", response_model=FavoritesViewResponse)
def favorites(user: dict = Depends(require_user)) -> FavoritesViewResponse:
    return _view_response(_own_view(user))


@app.put("/favorites/view", response_model=FavoritesViewResponse)
def update_favorites_view(body: ViewStateUpdate, user: dict = Depends(require_user)) -> FavoritesViewResponse:
    view = _own_view(user)
    view.update_state(body)
    return _view_response(view)


@app.post("/favorites/view/sort/{field}", response_model=FavoritesViewResponse)
def toggle_favorites_sort(field: SortField, user: dict = Depends(require_user)) -> FavoritesViewResponse:
    view = _own_view(user)
    view.update_state(ViewStateUpdate(sort=toggle_sort(view.sort, field)))
    return _view_response(view)


@app.put("/favorites/view/sort/{field}", response_model=FavoritesViewResponse)
def set_favorites_sort_order(
    field: SortField,
    body: SortOrderRequest,
    user: dict = Depends(require_user),
) -> FavoritesViewResponse:
    view = _own_view(user)
    view.update_state(ViewStateUpdate(sort=set_sort_order(view.sort, field, body.order)))
    return _view_response(view)


@app.get("/favorites/areas")
def favorite_areas(q: str = "", user: dict = Depends(require_user)) -> list[dict]:
    return group_by_area(_own_view(user).raw(), q)


@app.post("/favorites", response_model=Restaurant, status_code=201)
def add_manual_favorite(body: RestaurantCreate, user: dict = Depends(require_user)) -> Restaurant:
    return _save_favorite(user, restaurant_data_from_form(body))


@app.post("/favorites/from-search", response_model=Restaurant, status_code=201)
def add_favorite_from_search(body: AddFavoriteRequest, user: dict = Depends(require_user)) -> Restaurant:
    return _save_favorite(user, restaurant_data_from_search(body.result))


@app.patch("/favorites/{restaurant_id}", response_model=FavoriteUpdateResponse)
def update_favorite(
    restaurant_id: str,
    body: RestaurantUpdate,
    user: dict = Depends(require_user),
) -> FavoriteUpdateResponse:
    return _apply_update(user, restaurant_id, body.changed_fields())


@app.delete("/favorites/{restaurant_id}")
def delete_favorite(restaurant_id: str, user: dict = Depends(require_user)) -> dict:
    try:
        store.delete_restaurant(restaurant_id, user["id"])
    except store.RestaurantNotFound as exc:
        raise HTTPException(status_code=404, detail=str(exc)) from exc
    except store.PermissionDenied as exc:
        raise HTTPException(status_code=403, detail=str(exc)) from exc
    _own_view(user).remove(restaurant_id)
    invalidate_owner(user["id"])
    return {"status": "deleted"}


@app.post("/favorites/{restaurant_id}/locate", response_model=FavoriteUpdateResponse)
def fix_favorite_location(restaurant_id: str, user: dict = Depends(require_user)) -> FavoriteUpdateResponse:
    try:
        restaurant = store.get_restaurant(restaurant_id)
    except store.RestaurantNotFound as exc:
        raise HTTPException(status_code=404, detail=str(exc)) from exc
    if restaurant.user_id != user["id"]:
        raise HTTPException(status_code=403, detail="Only the owner can modify this restaurant")

    view = _own_view(user)
    view.mark_geocoding(restaurant_id)
    try:
        lat, lng = locate_restaurant(restaurant)
    except GeocodingError as exc:
        view.clear_geocoding(restaurant_id)
        raise HTTPException(status_code=422, detail=str(exc)) from exc
    return _apply_update(user, restaurant_id, {"latitude": lat, "longitude": lng})


@app.post("/favorites/{restaurant_id}/intro", response_model=IntroResponse)
def favorite_intro(restaurant_id: str, user: dict = Depends(require_user)) -> IntroResponse:
    """Draft an introduction for a saved restaurant. Nothing is stored; the
    client may save it as the comment through the regular PATCH."""
    try:
        restaurant = store.get_restaurant(restaurant_id)
    except store.RestaurantNotFound as exc:
        raise HTTPException(status_code=404, detail=str(exc)) from exc
    if restaurant.user_id != user["id"]:
        raise HTTPException(status_code=403, detail="Only the owner can modify this restaurant")
    return _intro_response(user, write_restaurant_intro(IntroSubject.from_restaurant(restaurant)))


# ── Search ───────────────────────────────────────────────────────────────


@app.post("/search", response_model=SearchResponse)
def search(body: SearchQuery, user: dict = Depends(require_user)) -> SearchResponse:
    session = start_session(user["id"], body)
    session.run(_primary_search, _fallback_search_for(user["id"]))
    return _search_response(user["id"], session)


@app.post("/search/fallback", response_model=SearchResponse)
def search_fallback(user: dict = Depends(require_user)) -> SearchResponse:
    session = current_session(user["id"])
    if session is None:
        raise HTTPException(status_code=404, detail="No search in progress")
    session.trigger_fallback(_fallback_search_for(user["id"]))
    return _search_response(user["id"], session)


@app.post("/search/page", response_model=SearchResponse)
def search_page(body: PageRequest, user: dict = Depends(require_user)) -> SearchResponse:
    session = current_session(user["id"])
    if session is None:
        raise HTTPException(status_code=404, detail="No search in progress")
    session.load_page(_primary_search, body.page)
    return _search_response(user["id"], session)


@app.get("/search/current", response_model=SearchResponse)
def search_current(user: dict = Depends(require_user)) -> SearchResponse:
    session = current_session(user["id"])
    if session is None:
        raise HTTPException(status_code=404, detail="No search in progress")
    return _search_response(user["id"], session)


@app.get("/search/genres", response_model=list[Genre])
def search_genres(user: dict = Depends(require_user)) -> list[Genre]:
    try:
        return hotpepper.genres()
    except HotpepperError as exc:
        raise HTTPException(status_code=502, detail=str(exc)) from exc


@app.get("/search/areas", response_model=list[Area])
def search_areas(
    prefecture: str | None = None,
    large_area_code: str | None = None,
    user: dict = Depends(require_user),
) -> list[Area]:
    code = large_area_code or PREFECTURE_TO_LARGE_AREA.get(prefecture or "")
    if not code:
        raise HTTPException(status_code=422, detail="A known prefecture or a large area code is required")
    try:
        return hotpepper.middle_areas(code)
    except HotpepperError as exc:
        raise HTTPException(status_code=502, detail=str(exc)) from exc


@app.post("/search/intro", response_model=IntroResponse)
def search_result_intro(body: AddFavoriteRequest, user: dict = Depends(require_user)) -> IntroResponse:
    return _intro_response(user, write_restaurant_intro(IntroSubject.from_search_result(body.result)))


# ── Sharing ──────────────────────────────────────────────────────────────


@app.post("/shares", response_model=ShareResponse, status_code=201)
def create_share_link(body: ShareFilters | None = None, user: dict = Depends(require_user)) -> ShareResponse:
    if body is None:
        view = _own_view(user)
        body = ShareFilters(sidebar_filters=view.sidebar_filters, genre_filters=view.genre_filters)
    share = create_share(user["id"], body)
    return ShareResponse(
        id=share.id,
        owner=_profile(user["id"]),
        created_at=share.created_at,
        expires_at=share.expires_at,
        filters=share.filters,
    )


def _resolve(share_id: str):
    try:
        return resolve_share(share_id)
    except ShareNotFound as exc:
        raise HTTPException(status_code=404, detail=str(exc)) from exc
    except ShareExpired as exc:
        raise HTTPException(status_code=410, detail=str(exc)) from exc


@app.get("/shares/{share_id}", response_model=ShareResponse)
def get_share(share_id: str) -> ShareResponse:
    share = _resolve(share_id)
    return ShareResponse(
        id=share.id,
        owner=_profile(share.user_id),
        created_at=share.created_at,
        expires_at=share.expires_at,
        filters=share.filters,
    )


@app.get("/shares/{share_id}/restaurants", response_model=list[Restaurant])
def get_shared_restaurants(
    share_id: str,
    sort: list[str] = Query(default=["prefecture:asc"]),
    view: ViewMode = ViewMode.favorites,
) -> list[Restaurant]:
    _resolve(share_id)
    return derive_list(shared_restaurants(share_id), [], [], _parse_sort(sort), view)


# ── Users, follows and blocks ───────────────────────────────────────────


@app.get("/users/search", response_model=list[UserProfile])
def find_users(q: str = "", user: dict = Depends(require_user)) -> list[UserProfile]:
    return [
        UserProfile(id=u["id"], username=u["username"], display_name=u["display_name"])
        for u in search_users(q, exclude_id=user["id"])
        if not follows.is_blocked(user["id"], u["id"])
    ]


@app.get("/users/{user_id}")
def user_profile(user_id: str, user: dict = Depends(require_user)) -> dict:
    try:
        profile = _profile(user_id)
    except UserNotFound as exc:
        raise HTTPException(status_code=404, detail=str(exc)) from exc
    status = follows.follow_status(user["id"], user_id)
    return {
        "profile": profile,
        "counts": follows.follow_counts(user_id),
        "follow_status": status.value if status else None,
        "can_view": follows.can_view(user["id"], user_id),
    }


@app.get("/users/{user_id}/favorites", response_model=FavoritesViewResponse)
def followed_favorites(user_id: str, user: dict = Depends(require_user)) -> FavoritesViewResponse:
    return _view_response(_followed_view(user, user_id))


@app.put("/users/{user_id}/favorites/view", response_model=FavoritesViewResponse)
def update_followed_view(
    user_id: str,
    body: ViewStateUpdate,
    user: dict = Depends(require_user),
) -> FavoritesViewResponse:
    view = _followed_view(user, user_id)
    view.update_state(body)
    return _view_response(view)


@app.get("/users/{user_id}/followers", response_model=list[UserProfile])
def user_followers(user_id: str, user: dict = Depends(require_user)) -> list[UserProfile]:
    return follows.followers(user_id)


@app.get("/users/{user_id}/following", response_model=list[UserProfile])
def user_following(user_id: str, user: dict = Depends(require_user)) -> list[UserProfile]:
    return follows.following(user_id)


@app.get("/follows/counts", response_model=FollowCounts)
def my_follow_counts(user: dict = Depends(require_user)) -> FollowCounts:
    return follows.follow_counts(user["id"])


@app.get("/follows/requests/received", response_model=list[UserProfile])
def received_requests(user: dict = Depends(require_user)) -> list[UserProfile]:
    return follows.pending_received(user["id"])


@app.get("/follows/requests/sent", response_model=list[UserProfile])
def sent_requests(user: dict = Depends(require_user)) -> list[UserProfile]:
    return follows.pending_sent(user["id"])


@app.post("/follows/{user_id}", status_code=201)
def follow_user(user_id: str, user: dict = Depends(require_user)) -> dict:
    try:
        follow = follows.request_follow(user["id"], user_id)
    except follows.FollowError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc
    return {"status": follow.status.value}


@app.delete("/follows/{user_id}")
def unfollow_user(user_id: str, user: dict = Depends(require_user)) -> dict:
    try:
        follows.unfollow(user["id"], user_id)
    except follows.FollowError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc
    drop_view(user["id"], user_id)
    return {"status": "unfollowed"}


@app.post("/follows/requests/{follower_id}/accept")
def accept_request(follower_id: str, user: dict = Depends(require_user)) -> dict:
    try:
        follow = follows.accept_follow(user["id"], follower_id)
    except follows.FollowError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc
    return {"status": follow.status.value}


@app.post("/follows/requests/{follower_id}/reject")
def reject_request(follower_id: str, user: dict = Depends(require_user)) -> dict:
    try:
        follows.reject_follow(user["id"], follower_id)
    except follows.FollowError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc
    return {"status": "rejected"}


@app.get("/blocks", response_model=list[UserProfile])
def list_blocks(user: dict = Depends(require_user)) -> list[UserProfile]:
    return follows.blocked_users(user["id"])


@app.post("/blocks/{user_id}", status_code=201)
def block_user(user_id: str, user: dict = Depends(require_user)) -> dict:
    try:
        get_user(user_id)
        follows.block(user["id"], user_id)
    except UserNotFound as exc:
        raise HTTPException(status_code=404, detail=str(exc)) from exc
    except follows.FollowError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc
    drop_view(user["id"], user_id)
    drop_view(user_id, user["id"])
    return {"status": "blocked"}


@app.delete("/blocks/{user_id}")
def unblock_user(user_id: str, user: dict = Depends(require_user)) -> dict:
    try:
        follows.unblock(user["id"], user_id)
    except follows.FollowError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc
    return {"status": "unblocked"}


@app.get("/timeline", response_model=list[TimelineEntry])
def timeline(limit: int = Query(default=50, ge=1, le=200), user: dict = Depends(require_user)) -> list[TimelineEntry]:
    return follows.timeline(user["id"], limit=limit)


# ── Notifications ────────────────────────────────────────────────────────


@app.get("/notifications", response_model=list[Notification])
def list_notifications(unread_only: bool = False, user: dict = Depends(require_user)) -> list[Notification]:
    return notifications.list_notifications(user["id"], unread_only=unread_only)


@app.get("/notifications/unread-count")
def unread_notifications(user: dict = Depends(require_user)) -> dict:
    return {"count": notifications.unread_count(user["id"])}


@app.post("/notifications/read")
def mark_notifications_read(body: MarkReadRequest, user: dict = Depends(require_user)) -> dict:
    return {"updated": notifications.mark_read(user["id"], body.ids)}


# ── Recommendation chat ──────────────────────────────────────────────────


@app.post("/chat", response_model=ChatResponse)
def chat(body: ChatRequest, user: dict = Depends(require_user)) -> ChatResponse:
    restaurants = store.list_restaurants(user["id"])
    if not restaurants:
        raise HTTPException(status_code=400, detail="Add some favorites before asking for recommendations")

    try:
        if body.history_id:
            prior = chat_history.get_history(user["id"], body.history_id).messages
        else:
            chat_history.check_capacity(user["id"])
            prior = []
    except chat_history.HistoryNotFound as exc:
        raise HTTPException(status_code=404, detail=str(exc)) from exc
    except chat_history.HistoryLimitReached as exc:
        raise HTTPException(status_code=409, detail=str(exc)) from exc

    outcome = recommend_from_favorites(body.message, restaurants, prior)
    if outcome.input_tokens is not None:
        record_api_usage(user["id"], "groq-recommend", outcome.input_tokens, outcome.output_tokens or 0)

    turn = [
        ChatMessage(role="user", content=body.message),
        ChatMessage(role="model", content=json.dumps(outcome.recommendation.model_dump(), ensure_ascii=False)),
    ]
    try:
        if body.history_id:
            saved = chat_history.append_messages(user["id"], body.history_id, turn)
        else:
            saved = chat_history.create_history(user["id"], turn)
    except chat_history.HistoryNotFound as exc:
        raise HTTPException(status_code=404, detail=str(exc)) from exc
    except chat_history.HistoryLimitReached as exc:
        raise HTTPException(status_code=409, detail=str(exc)) from exc

    by_id = {r.id: r for r in restaurants}
    return ChatResponse(
        history_id=saved.id,
        summary=outcome.recommendation.summary,
        recommendations=[
            RecommendedRestaurant(restaurant=by_id[p.id], reason=p.reason)
            for p in outcome.recommendation.recommendations
        ],
        messages=saved.messages,
    )


@app.get("/chat/histories", response_model=list[ChatHistory])
def chat_histories(user: dict = Depends(require_user)) -> list[ChatHistory]:
    return chat_history.list_histories(user["id"])


@app.get("/chat/histories/{history_id}", response_model=ChatHistory)
def get_chat_history(history_id: str, user: dict = Depends(require_user)) -> ChatHistory:
    try:
        return chat_history.get_history(user["id"], history_id)
    except chat_history.HistoryNotFound as exc:
        raise HTTPException(status_code=404, detail=str(exc)) from exc


@app.delete("/chat/histories/{history_id}")
def delete_chat_history(history_id: str, user: dict = Depends(require_user)) -> dict:
    try:
        chat_history.delete_history(user["id"], history_id)
    except chat_history.HistoryNotFound as exc:
        raise HTTPException(status_code=404, detail=str(exc)) from exc
    return {"status": "deleted"}


# ── Admin endpoints ──────────────────────────────────────────────────────


@app.get("/admin/usage")
def api_usage(days: int | None = Query(default=None, ge=1), user: dict = Depends(require_admin)) -> dict:
    return compute_usage_report(get_usage(), days=days)


@app.get("/admin/cache/stats")
def cache_stats(user: dict = Depends(require_admin)) -> dict:
    return get_cache_stats()


@app.post("/admin/users", status_code=201)
def create_single_user(body: NewUserRequest, user: dict = Depends(require_admin)) -> dict:
    try:
        created = create_user(
            username=body.username,
            password=body.password,
            display_name=body.display_name,
            email=body.email,
        )
    except DuplicateUser as exc:
        raise HTTPException(status_code=409, detail=str(exc)) from exc
    except InvalidPassword as exc:
        raise HTTPException(status_code=422, detail=str(exc)) from exc
    logger.info("Admin %s created user %s", user["id"], created["id"])
    return {"message": "User created successfully.", "user": created}


@app.post("/admin/users/bulk", response_model=BulkRegisterResponse)
async def bulk_register_users(request: Request, user: dict = Depends(require_admin)) -> BulkRegisterResponse:
    try:
        text = (await request.body()).decode("utf-8-sig")
    except UnicodeDecodeError as exc:
        raise HTTPException(status_code=400, detail="CSV must be UTF-8") from exc
    try:
        return bulk_register(text)
    except NoValidUsers as exc:
        raise HTTPException(
            status_code=400,
            detail={"error": str(exc), "parse_errors": exc.parse_errors},
        ) from exc
