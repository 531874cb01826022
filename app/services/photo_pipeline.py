"""Pin -> photo set pipeline: search near the pin, record photos, download and cache images."""
import asyncio
import inspect
import logging
import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Awaitable, Callable

from sqlalchemy import delete, func, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from app.database import async_session
from app.models.photo import Photo
from app.models.pin import Pin
from app.services.flickr_client import FlickrClient
from app.services.image_cache import ImageCache, derive_file_name
from app.utils.exceptions import AppException, ClientError

logger = logging.getLogger(__name__)

DownloadCallback = Callable[[str], Awaitable[None] | None]


@dataclass
class PinFetch:
    """Downloads started by one fetch of a pin's photo collection."""

    pin_id: str
    photo_ids: list[str] = field(default_factory=list)
    tasks: list[asyncio.Task] = field(default_factory=list)

    async def wait(self) -> None:
        if self.tasks:
            await asyncio.gather(*self.tasks, return_exceptions=True)


async def count_downloads(db: AsyncSession, pin_id: str) -> tuple[int, int]:
    """Return (downloaded, total) photo counts for a pin."""
    total = await db.scalar(
        select(func.count()).select_from(Photo).where(Photo.pin_id == pin_id)
    )
    downloaded = await db.scalar(
        select(func.count()).select_from(Photo).where(
            Photo.pin_id == pin_id, Photo.download_status == "downloaded"
        )
    )
    return downloaded or 0, total or 0


async def list_photos(db: AsyncSession, pin_id: str) -> list[Photo]:
    result = await db.execute(
        select(Photo).where(Photo.pin_id == pin_id).order_by(Photo.position)
    )
    return list(result.scalars().all())


class PhotoPipeline:
    def __init__(self, client: FlickrClient, cache: ImageCache, session_factory=async_session):
        self.client = client
        self.cache = cache
        self.session_factory = session_factory
        self._cancel_tokens: dict[str, asyncio.Event] = {}
        self._tasks: dict[str, set[asyncio.Task]] = {}

    async def add_pin(
        self, latitude: float, longitude: float, on_complete: DownloadCallback | None = None
    ) -> tuple[Pin | None, PinFetch | None]:
        """Create a pin and fetch its first photo collection.

        A pin already placed at the same coordinate is returned as is, without
        a new fetch. A failed search leaves the pin in the "failed" state.
        The pin is None when it was deleted before the fetch finished.
        """
        async with self.session_factory() as db:
            existing = await self._find_pin(db, latitude, longitude)
            if existing:
                return existing, None

            pin = Pin(
                id=str(uuid.uuid4()),
                latitude=latitude,
                longitude=longitude,
                created_at=datetime.now(timezone.utc).isoformat(),
                fetch_status="searching",
                page=1,
                pages=1,
            )
            db.add(pin)
            try:
                await db.commit()
            except IntegrityError:
                await db.rollback()
                existing = await self._find_pin(db, latitude, longitude)
                if existing:
                    return existing, None
                raise

        logger.info("Added pin %s at lat=%s lon=%s", pin.id, latitude, longitude)
        try:
            fetch = await self.fetch_photos(pin.id, on_complete=on_complete)
        except ClientError:
            fetch = None

        async with self.session_factory() as db:
            pin = await db.get(Pin, pin.id)
        return pin, fetch

    async def fetch_photos(
        self, pin_id: str, page: int | None = None, on_complete: DownloadCallback | None = None
    ) -> PinFetch:
        async with self.session_factory() as db:
            pin = await db.get(Pin, pin_id)
            if pin is None:
                raise AppException("Pin not found", status_code=404)

            pin.fetch_status = "searching"
            await db.commit()

            token = self._cancel_tokens.setdefault(pin_id, asyncio.Event())
            try:
                result = await self.client.search(pin.latitude, pin.longitude, page)
            except ClientError as e:
                logger.error("Photo search failed for pin %s: %s", pin_id, e.message)
                if not token.is_set() and await db.get(Pin, pin_id, populate_existing=True):
                    pin.fetch_status = "failed"
                    await db.commit()
                raise

            # the pin may have been deleted or refreshed while the search ran
            if token.is_set() or await db.get(Pin, pin_id, populate_existing=True) is None:
                logger.info("Pin %s cancelled during search, discarding results", pin_id)
                return PinFetch(pin_id=pin_id)

            photos = []
            for position, entry in enumerate(result.photo):
                if not entry.url_m:
                    logger.warning("Skipping search result %s without url_m", entry.id)
                    continue
                photo_id = str(uuid.uuid4())
                photo = Photo(
                    id=photo_id,
                    pin_id=pin_id,
                    flickr_id=entry.id,
                    image_url=entry.url_m,
                    file_name=f"{photo_id}_{derive_file_name(entry.url_m)}",
                    position=position,
                    download_status="pending",
                )
                db.add(photo)
                photos.append(photo)

            pin.fetch_status = "populated"
            pin.page = result.page
            pin.pages = max(result.pages, 1)
            try:
                await db.commit()
            except IntegrityError:
                await db.rollback()
                logger.info("Pin %s deleted before its photos were stored", pin_id)
                return PinFetch(pin_id=pin_id)

        fetch = PinFetch(pin_id=pin_id)
        for photo in photos:
            task = asyncio.create_task(
                self._download(pin_id, photo.id, photo.image_url, photo.file_name, token, on_complete)
            )
            self._track(pin_id, task)
            fetch.photo_ids.append(photo.id)
            fetch.tasks.append(task)

        logger.info("Pin %s populated with %d photos, downloads started", pin_id, len(photos))
        return fetch

    async def new_collection(self, pin_id: str, on_complete: DownloadCallback | None = None) -> PinFetch:
        """Replace a pin's photos with the next page of search results."""
        self.cancel(pin_id)
        async with self.session_factory() as db:
            pin = await db.get(Pin, pin_id)
            if pin is None:
                raise AppException("Pin not found", status_code=404)
            next_page = pin.page % max(pin.pages, 1) + 1
            removed = await self._delete_photos(db, pin_id)
            await db.commit()

        logger.info("Removed %d photos from pin %s, loading page %d", removed, pin_id, next_page)
        return await self.fetch_photos(pin_id, page=next_page, on_complete=on_complete)

    async def delete_photo(self, photo_id: str) -> bool:
        async with self.session_factory() as db:
            photo = await db.get(Photo, photo_id)
            if photo is None:
                return False
            self.cache.delete(photo.file_name)
            await db.delete(photo)
            await db.commit()
        return True

    async def delete_pin(self, pin_id: str) -> bool:
        self.cancel(pin_id)
        async with self.session_factory() as db:
            pin = await db.get(Pin, pin_id)
            if pin is None:
                return False
            removed = await self._delete_photos(db, pin_id)
            await db.delete(pin)
            await db.commit()

        logger.info("Deleted pin %s and %d photos", pin_id, removed)
        return True

    async def load_image(self, photo_id: str) -> bytes | None:
        async with self.session_factory() as db:
            photo = await db.get(Photo, photo_id)
        if photo is None or photo.download_status != "downloaded":
            return None
        return self.cache.load(photo.file_name)

    async def download_progress(self, pin_id: str) -> tuple[int, int]:
        async with self.session_factory() as db:
            return await count_downloads(db, pin_id)

    async def all_downloaded(self, pin_id: str) -> bool:
        downloaded, total = await self.download_progress(pin_id)
        return downloaded == total

    def cancel(self, pin_id: str) -> None:
        """Stop in-flight downloads of a pin from persisting their results."""
        token = self._cancel_tokens.pop(pin_id, None)
        if token is not None:
            token.set()

    async def wait_idle(self, pin_id: str | None = None) -> None:
        """Wait for in-flight downloads, of one pin or of every pin."""
        if pin_id is not None:
            tasks = list(self._tasks.get(pin_id, ()))
        else:
            tasks = [task for pin_tasks in self._tasks.values() for task in pin_tasks]
        if tasks:
            await asyncio.gather(*tasks, return_exceptions=True)

    async def shutdown(self) -> None:
        tasks = [task for pin_tasks in self._tasks.values() for task in pin_tasks]
        for pin_id in list(self._cancel_tokens):
            self.cancel(pin_id)
        for task in tasks:
            task.cancel()
        if tasks:
            await asyncio.gather(*tasks, return_exceptions=True)

    def _track(self, pin_id: str, task: asyncio.Task) -> None:
        pin_tasks = self._tasks.setdefault(pin_id, set())
        pin_tasks.add(task)

        def _done(t: asyncio.Task) -> None:
            pin_tasks.discard(t)
            if not pin_tasks and self._tasks.get(pin_id) is pin_tasks:
                del self._tasks[pin_id]

        task.add_done_callback(_done)

    async def _find_pin(self, db: AsyncSession, latitude: float, longitude: float) -> Pin | None:
        result = await db.execute(
            select(Pin).where(Pin.latitude == latitude, Pin.longitude == longitude)
        )
        return result.scalars().first()

    async def _delete_photos(self, db: AsyncSession, pin_id: str) -> int:
        photos = await list_photos(db, pin_id)
        for photo in photos:
            self.cache.delete(photo.file_name)
        await db.execute(delete(Photo).where(Photo.pin_id == pin_id))
        return len(photos)

    async def _set_status(self, photo_id: str, status: str) -> Photo | None:
        async with self.session_factory() as db:
            photo = await db.get(Photo, photo_id)
            if photo is not None:
                photo.download_status = status
                await db.commit()
        return photo

    async def _download(
        self,
        pin_id: str,
        photo_id: str,
        image_url: str,
        file_name: str,
        token: asyncio.Event,
        on_complete: DownloadCallback | None,
    ) -> None:
        try:
            try:
                data = await self.client.download_image(image_url)
            except ClientError as e:
                logger.warning("Download failed for photo %s (%s): %s", photo_id, image_url, e.message)
                if not token.is_set():
                    await self._set_status(photo_id, "failed")
                return

            if token.is_set():
                logger.info("Pin %s cancelled, discarding download of photo %s", pin_id, photo_id)
                return

            self.cache.save(file_name, data)
            if await self._set_status(photo_id, "downloaded") is None:
                # record removed while the download was in flight
                self.cache.delete(file_name)
                return
        except Exception as e:
            logger.exception("Download pipeline FAILED for photo %s: %s", photo_id, e)
            # a partial write must not be served as image data
            self.cache.delete(file_name)
            try:
                await self._set_status(photo_id, "failed")
            except Exception:
                logger.exception("Could not mark photo %s as failed", photo_id)
            return

        if on_complete is not None:
            try:
                result = on_complete(photo_id)
                if inspect.isawaitable(result):
                    await result
            except Exception:
                logger.exception("Download callback failed for photo %s", photo_id)
