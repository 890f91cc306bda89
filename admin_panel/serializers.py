from django import forms

from authentication.validators import validate_password, validate_username


class CreateUserSerializer(forms.Form):
    username = forms.CharField(
        max_length=150,
        error_messages={'required': 'Kullanıcı adı gerekli.'}
    )
    password = forms.CharField(
        max_length=255,
        strip=False,
        error_messages={'required': 'Şifre gerekli.'}
    )

    def clean_username(self):
        return validate_username(self.cleaned_data.get('username'))

    def clean_password(self):
        return validate_password(self.cleaned_data.get('password'))


class ConfigValueSerializer(forms.Form):
    value = forms.CharField(
        max_length=2000,
        error_messages={'required': 'Değer gerekli.'}
    )
