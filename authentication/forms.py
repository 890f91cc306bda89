# authentication/forms.py
from django import forms

from authentication.validators import validate_username, validate_password


class LoginForm(forms.Form):
    username = forms.CharField(
        max_length=150,
        error_messages={
            'required': 'Kullanıcı adı gerekli.',
            'max_length': 'Kullanıcı adı en fazla 150 karakter olabilir.'
        }
    )
    password = forms.CharField(
        max_length=255,
        strip=False,
        error_messages={
            'required': 'Şifre gerekli.',
            'max_length': 'Şifre en fazla 255 karakter olabilir.'
        }
    )

    def clean_username(self):
        return validate_username(self.cleaned_data.get('username'))

    def clean_password(self):
        return validate_password(self.cleaned_data.get('password'))
