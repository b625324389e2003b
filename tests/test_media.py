import pytest

from Tallyport import repos
from Tallyport.content_types import UPLOAD_FILE
from Tallyport.errors import DisallowedFileTypeError, ImporterError
from Tallyport.media import StoreFileResolver, file_category, is_file_type_allowed


def test_file_category():
    assert file_category("image/png") == "images"
    assert file_category("video/mp4") == "videos"
    assert file_category("audio/mpeg") == "audios"
    assert file_category("application/pdf") == "files"
    assert file_category(None) == "files"


def test_is_file_type_allowed():
    assert is_file_type_allowed("image/png", ["images"])
    assert is_file_type_allowed("application/pdf", ["any"])
    assert not is_file_type_allowed("application/pdf", ["images", "videos"])


async def test_registers_url_once(db, user):
    files = StoreFileResolver()

    first = await files.find_or_import_file(db, "https://cdn.example/img/ada.JPG", user)
    again = await files.find_or_import_file(db, {"url": "https://cdn.example/img/ada.JPG"}, user)

    assert again.id == first.id
    assert first.data == {
        "name": "ada.JPG",
        "url": "https://cdn.example/img/ada.JPG",
        "ext": ".jpg",
        "mime": "image/jpeg",
    }
    assert await repos.count_entries(db, UPLOAD_FILE) == 1


async def test_finds_by_id_and_name(db, user, seed):
    existing = await seed(UPLOAD_FILE, {"name": "logo.png", "mime": "image/png"})
    files = StoreFileResolver()

    by_id = await files.find_or_import_file(db, existing, user, allowed_file_types=["images"])
    by_name = await files.find_or_import_file(db, "logo.png", user)

    assert by_id.id == by_name.id == existing


async def test_unknown_id_raises(db, user):
    with pytest.raises(ImporterError, match="File 12 not found"):
        await StoreFileResolver().find_or_import_file(db, {"id": 12}, user)


async def test_existing_file_is_still_type_checked(db, user, seed):
    existing = await seed(UPLOAD_FILE, {"name": "cv.pdf", "mime": "application/pdf"})

    with pytest.raises(DisallowedFileTypeError):
        await StoreFileResolver().find_or_import_file(
            db, existing, user, allowed_file_types=["images"]
        )


async def test_rejects_unusable_reference(db, user):
    with pytest.raises(ImporterError):
        await StoreFileResolver().find_or_import_file(db, 1.5, user)
