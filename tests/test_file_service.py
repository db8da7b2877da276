import pytest

from coaching_portal.services import file_service


def test_pdf_extension_and_signature_checks():
    assert file_service.allowed_file("Notes.PDF")
    assert not file_service.allowed_file("notes.docx")
    assert not file_service.allowed_file("pdf")
    assert file_service.has_pdf_signature(b"%PDF-1.7\n...")
    assert not file_service.has_pdf_signature(b"PK\x03\x04")
    assert not file_service.has_pdf_signature(b"")


def test_safe_pdf_filename_strips_paths():
    assert file_service.safe_pdf_filename("../../secret/Week 1.pdf") == "secret_Week_1.pdf"
    assert file_service.safe_pdf_filename("malware.exe") == ""


def test_storage_path_layout():
    path = file_service.storage_path("alpha", "class-9", "mathematics", "mock-test", "ch-1", "a.pdf")
    assert path == "pdfs/alpha/class-9/mathematics/mock-test/ch-1/a.pdf"

    with pytest.raises(ValueError):
        file_service.storage_path("alpha", "class-9", "", "mock-test", "ch-1", "a.pdf")


def test_drive_links_become_direct_downloads():
    url = "https://drive.google.com/file/d/1AbC-d_E/view?usp=sharing"
    assert file_service.download_link(url) == "https://drive.google.com/uc?export=download&id=1AbC-d_E"
    assert file_service.download_link("https://cdn.example.test/a.pdf") == "https://cdn.example.test/a.pdf"
