import pytest

from promptly.exceptions import UploadValidationError
from promptly.validation import UploadedImage, validate_image, MAX_FILE_SIZE
from .conftest import make_image

SVG = b'<svg xmlns="http://www.w3.org/2000/svg" %s><rect width="10" height="10"/></svg>'


def upload(content, content_type='image/jpeg', filename='photo.jpg'):
    return UploadedImage(content=content, filename=filename, content_type=content_type)


def errors_for(item):
    with pytest.raises(UploadValidationError) as exc:
        validate_image(item)
    return exc.value.errors['image']


def test_valid_jpeg():
    info = validate_image(upload(make_image('JPEG', (512, 512))))
    assert (info.extension, info.width, info.height) == ('jpg', 512, 512)


@pytest.mark.parametrize('fmt,content_type,ext', [
    ('PNG', 'image/png', 'png'),
    ('GIF', 'image/gif', 'gif'),
    ('JPEG', 'image/jpg', 'jpg'),
])
def test_accepted_raster_types(fmt, content_type, ext):
    assert validate_image(upload(make_image(fmt, (200, 150)), content_type)).extension == ext


def test_too_small_png_rejected_for_dimensions():
    errors = errors_for(upload(make_image('PNG', (50, 50)), 'image/png'))
    assert errors == ["The image field has invalid image dimensions."]


def test_bounds_are_inclusive():
    assert validate_image(upload(make_image('PNG', (100, 100)), 'image/png'))
    assert validate_image(upload(make_image('PNG', (10000, 100), mode='1', color=1), 'image/png'))


def test_too_wide_rejected():
    errors = errors_for(upload(make_image('PNG', (10001, 100), mode='1', color=1), 'image/png'))
    assert "The image field has invalid image dimensions." in errors


def test_oversized_file_rejected():
    content = make_image('PNG', (200, 200)) + b'\0' * MAX_FILE_SIZE
    errors = errors_for(upload(content, 'image/png'))
    assert errors == ["The image field must not be greater than 10240 kilobytes."]


def test_exactly_max_size_allowed():
    content = make_image('PNG', (200, 200))
    content += b'\0' * (MAX_FILE_SIZE - len(content))
    assert validate_image(upload(content, 'image/png')).extension == 'png'


def test_non_image_collects_every_violation():
    errors = errors_for(upload(b'just some text', 'text/plain', 'notes.txt'))
    assert "The image field must be an image." in errors
    assert "The image field must be a file of type: jpeg, png, jpg, gif, svg." in errors


def test_unsupported_image_format_rejected():
    errors = errors_for(upload(make_image('WEBP', (200, 200)), 'image/webp'))
    assert errors == ["The image field must be a file of type: jpeg, png, jpg, gif, svg."]


def test_declared_type_must_match_content():
    errors = errors_for(upload(make_image('PNG', (200, 200)), 'image/jpeg'))
    assert errors == ["The image field must be a file of type: jpeg, png, jpg, gif, svg."]


def test_svg_with_size_attributes():
    info = validate_image(upload(SVG % b'width="200" height="300px"', 'image/svg+xml', 'logo.svg'))
    assert (info.extension, info.width, info.height) == ('svg', 200, 300)


def test_svg_viewbox_is_dimension_checked():
    errors = errors_for(upload(SVG % b'viewBox="0 0 40 40"', 'image/svg+xml', 'icon.svg'))
    assert errors == ["The image field has invalid image dimensions."]


def test_svg_without_intrinsic_size_is_accepted():
    info = validate_image(upload(SVG % b'', 'image/svg+xml', 'shape.svg'))
    assert info.extension == 'svg'
    assert info.width is None


def test_svg_after_a_long_comment_is_detected():
    content = b'<?xml version="1.0"?>\n<!-- ' + b'x' * 4096 + b' -->\n' + SVG % b'width="200" height="200"'
    info = validate_image(upload(content, 'image/svg+xml', 'commented.svg'))
    assert (info.extension, info.width, info.height) == ('svg', 200, 200)


def test_svg_with_doctype_is_detected():
    doctype = (b'<!DOCTYPE svg PUBLIC "-//W3C//DTD SVG 1.1//EN" '
               b'"http://www.w3.org/Graphics/SVG/1.1/DTD/svg11.dtd">\n')
    info = validate_image(upload(doctype + SVG % b'width="150" height="150"', 'image/svg+xml', 'd.svg'))
    assert info.extension == 'svg'


def test_svg_entity_expansion_is_refused():
    bomb = (b'<?xml version="1.0"?>\n'
            b'<!DOCTYPE svg [<!ENTITY a "aaaaaaaaaa"><!ENTITY b "&a;&a;&a;&a;&a;&a;&a;&a;&a;&a;">]>\n'
            b'<svg xmlns="http://www.w3.org/2000/svg" width="200" height="200"><text>&b;</text></svg>')
    errors = errors_for(upload(bomb, 'image/svg+xml', 'bomb.svg'))
    assert "The image field must be an image." in errors


def test_xml_that_is_not_svg_is_rejected():
    errors = errors_for(upload(b'<html><body>hi</body></html>', 'image/svg+xml', 'page.svg'))
    assert "The image field must be an image." in errors


@pytest.mark.parametrize('content_type,expected', [
    ('image/pjpeg', 'image/jpeg'),
    ('image/jpg', 'image/jpeg'),
    ('IMAGE/JPEG; name=photo.jpg', 'image/jpeg'),
])
def test_mime_type_is_canonical(content_type, expected):
    assert validate_image(upload(make_image('JPEG', (200, 200)), content_type)).mime_type == expected
