from django import forms
import re

_WHITESPACE = re.compile(r"\s+")


def normalize_username(username: str) -> str:
    """Usernames are stored trimmed, without inner whitespace, lower-cased."""
    return _WHITESPACE.sub("", username or "").lower()


def validate_username(username: str):
    username = normalize_username(username)
    if not username:
        raise forms.ValidationError("Kullanıcı adı boş olamaz.")
    if len(username) > 150:
        raise forms.ValidationError("Kullanıcı adı en fazla 150 karakter olabilir.")
    if re.search(r'[<>"/\\\']', username):
        raise forms.ValidationError('Kullanıcı adı <, >, ", \', / veya \\ içeremez.')
    return username


def validate_password(password: str):
    if not password:
        raise forms.ValidationError("Şifre boş olamaz.")
    if len(password) > 255:
        raise forms.ValidationError("Şifre en fazla 255 karakter olabilir.")
    return password


def validate_age(age: str):
    age = (age or "").strip()
    if age and not age.isdigit():
        raise forms.ValidationError("Yaş sayı olmalıdır.")
    if age and not (0 < int(age) < 130):
        raise forms.ValidationError("Yaş 1 ile 129 arasında olmalıdır.")
    return age
