"""
collections.py

API endpoints for collection discovery, infinite scroll, search and stats.
"""
from fastapi import APIRouter, Depends, HTTPException, Query, Request
from typing import Any, Dict, List, Optional
import logging

from cineflix.models import Collection, CollectionBatch, DiscoveryProgress
from cineflix.services.collection_insights import CollectionStats
from cineflix.services.collection_search import CollectionFilter
from cineflix.services.collections_service import CollectionsService

logger = logging.getLogger(__name__)
router = APIRouter()


def get_collections_service(request: Request) -> CollectionsService:
    return request.app.state.collections_service


@router.get("/discover", response_model=List[Collection])
async def discover_collections(
    max_results: int = Query(200, ge=1, le=500),
    force_refresh: bool = Query(False),
    service: CollectionsService = Depends(get_collections_service),
):
    """
    Discover collections across popular movies, major franchises and genres.
    Served from the two-hour snapshot unless ``force_refresh`` is set.
    """
    return await service.discover_all(max_results=max_results, force_refresh=force_refresh)


@router.get("/batch", response_model=CollectionBatch)
async def next_collections_batch(
    size: int = Query(20, ge=1, le=100),
    service: CollectionsService = Depends(get_collections_service),
):
    """Next page for infinite scroll; ``has_more`` stays true while there is budget left."""
    return await service.next_batch(size)


@router.get("/progress", response_model=DiscoveryProgress)
async def discovery_progress(service: CollectionsService = Depends(get_collections_service)):
    return service.get_progress()


@router.get("/snapshot", response_model=List[Collection])
async def cached_snapshot(service: CollectionsService = Depends(get_collections_service)):
    return service.get_cached_snapshot()


@router.get("/search", response_model=List[Collection])
async def search_known_collections(
    q: str = Query("", description="Search query"),
    genre: Optional[List[str]] = Query(None),
    type: Optional[List[str]] = Query(None),
    status: Optional[List[str]] = Query(None),
    length: str = Query("all", pattern="^(all|trilogy|extended)$"),
    service: CollectionsService = Depends(get_collections_service),
):
    flt = CollectionFilter(genres=genre or [], types=type or [], statuses=status or [], length=length)
    return service.search(q, flt)


@router.get("/search/hybrid", response_model=List[Collection])
async def search_hybrid(
    q: str = Query(..., min_length=1, description="Search query"),
    genre: Optional[List[str]] = Query(None),
    type: Optional[List[str]] = Query(None),
    status: Optional[List[str]] = Query(None),
    length: str = Query("all", pattern="^(all|trilogy|extended)$"),
    service: CollectionsService = Depends(get_collections_service),
):
    """Local results first; TMDB is searched too when fewer than five match."""
    flt = CollectionFilter(genres=genre or [], types=type or [], statuses=status or [], length=length)
    return await service.search_hybrid(q, flt)


@router.get("/search/direct", response_model=List[Collection])
async def search_direct(
    q: str = Query(..., min_length=1, description="Search query"),
    service: CollectionsService = Depends(get_collections_service),
):
    return await service.search_direct(q)


@router.get("/stats", response_model=CollectionStats)
async def collection_statistics(service: CollectionsService = Depends(get_collections_service)):
    return await service.get_stats()


@router.get("/trending", response_model=List[Collection])
async def trending(service: CollectionsService = Depends(get_collections_service)):
    return await service.get_trending()


@router.get("/category/{category}", response_model=List[Collection])
async def by_category(
    category: str,
    service: CollectionsService = Depends(get_collections_service),
):
    """Curated shelves: popular, complete, trilogies, extended, superhero, action."""
    return await service.get_by_category(category)


@router.post("/cache/clear")
async def clear_collections_cache(
    include_responses: bool = Query(False),
    service: CollectionsService = Depends(get_collections_service),
) -> Dict[str, Any]:
    service.clear_cache()
    if include_responses:
        service.clear_response_cache()
    logger.info("Collections cache cleared via API")
    return {"status": "cleared", "responses_cleared": include_responses}


@router.get("/{collection_id}", response_model=Collection)
async def get_collection(
    collection_id: int,
    service: CollectionsService = Depends(get_collections_service),
):
    collection = await service.get_collection(collection_id)
    if collection is None:
        raise HTTPException(status_code=404, detail="Collection not found")
    return collection
