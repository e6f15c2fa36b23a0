import io

import pytest
from fastapi import HTTPException, UploadFile
from pydantic import BaseModel, ValidationError, field_validator
from starlette.datastructures import Headers

from envie2sortir.utils.code import generate_verification_code
from envie2sortir.utils.rate_limit import RateLimiter
from envie2sortir.utils.text import generate_slug, parse_address, strip_accents
from envie2sortir.utils.uploads import validate_image_file
from envie2sortir.utils.validation import first_error_message


class TestSlug:
    def test_accents_and_punctuation(self):
        assert generate_slug("Le Café d'Été") == "le-cafe-dete"

    def test_collapses_separators(self):
        assert generate_slug("  Bar   & Co  ") == "bar-co"
        assert generate_slug("Pub -- Irlandais") == "pub-irlandais"

    def test_ligatures(self):
        assert generate_slug("Chez Œdipe") == "chez-oedipe"

    def test_empty(self):
        assert generate_slug("") == ""
        assert generate_slug(None) == ""

    def test_strip_accents(self):
        assert strip_accents("élève à Noël") == "eleve a Noel"


class TestParseAddress:
    def test_comma_separated(self):
        assert parse_address("12 rue de la Liberté, 21000 Dijon") == ("12 rue de la Liberté", "21000", "Dijon")

    def test_without_comma(self):
        assert parse_address("3 place Bellecour 69002 Lyon") == ("3 place Bellecour", "69002", "Lyon")

    def test_trailing_country(self):
        assert parse_address("8 bd Haussmann, 75009 Paris, France") == ("8 bd Haussmann", "75009", "Paris")

    def test_postal_code_only(self):
        assert parse_address("21000 Dijon") == ("", "21000", "Dijon")

    def test_unparseable(self):
        assert parse_address("Quelque part") == ("Quelque part", None, None)


class TestRateLimiter:
    def test_window(self):
        limiter = RateLimiter(max_requests=3, window_seconds=60)
        assert all(limiter.is_allowed("1.2.3.4", now=t) for t in (0, 1, 2))
        assert not limiter.is_allowed("1.2.3.4", now=3)
        # Autre IP, autre compteur
        assert limiter.is_allowed("5.6.7.8", now=3)
        # La première requête sort de la fenêtre
        assert limiter.is_allowed("1.2.3.4", now=60)

    def test_reset(self):
        limiter = RateLimiter(max_requests=1, window_seconds=60)
        assert limiter.is_allowed("ip", now=0)
        assert not limiter.is_allowed("ip", now=1)
        limiter.reset()
        assert limiter.is_allowed("ip", now=2)

    def test_idle_keys_are_dropped(self):
        limiter = RateLimiter(max_requests=5, window_seconds=60)
        for i in range(100):
            limiter.is_allowed(f"10.0.0.{i}", now=1)
        assert limiter.tracked_keys == 100

        assert limiter.is_allowed("10.0.1.1", now=120)
        assert limiter.tracked_keys == 1


class TestVerificationCode:
    def test_six_digits(self):
        for _ in range(20):
            code = generate_verification_code()
            assert len(code) == 6
            assert code.isdigit()

    def test_custom_length(self):
        assert len(generate_verification_code(8)) == 8


class _Sample(BaseModel):
    name: str

    @field_validator("name")
    @classmethod
    def not_blank(cls, v):
        if not v.strip():
            raise ValueError("Nom requis")
        return v


class TestFirstErrorMessage:
    def test_strips_value_error_prefix(self):
        with pytest.raises(ValidationError) as exc:
            _Sample(name="   ")
        assert first_error_message(exc.value) == "Nom requis"


def _upload(filename, content_type):
    return UploadFile(file=io.BytesIO(b"data"), filename=filename, headers=Headers({"content-type": content_type}))


class TestImageValidation:
    def test_accepts_image(self):
        validate_image_file(_upload("photo.JPG", "image/jpeg"))

    def test_rejects_extension(self):
        with pytest.raises(HTTPException) as exc:
            validate_image_file(_upload("menu.pdf", "application/pdf"))
        assert exc.value.status_code == 400

    def test_rejects_non_image_content_type(self):
        with pytest.raises(HTTPException):
            validate_image_file(_upload("photo.png", "text/plain"))
