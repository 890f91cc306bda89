from django import forms
from authentication.profiles import UNSPECIFIED
from authentication.validators import validate_age

GENDER_CHOICES = [
    (UNSPECIFIED, "Seçiniz"),
    ("Erkek", "Erkek"),
    ("Kadın", "Kadın"),
]

MARITAL_STATUS_CHOICES = [
    (UNSPECIFIED, "Seçiniz"),
    ("Bekar", "Bekar"),
    ("Evli", "Evli"),
    ("İlişkisi Var", "İlişkisi Var"),
    ("Boşanmış", "Boşanmış"),
]


class ProfileSerializer(forms.Form):
    """
    Serializer for the client profile form.
    Only the fields listed here can ever be written; role is not one of them.
    """
    name = forms.CharField(
        max_length=150,
        error_messages={'required': 'Ad / hitap şekli gerekli.'}
    )
    age = forms.CharField(max_length=3, required=False)
    gender = forms.ChoiceField(choices=GENDER_CHOICES, required=False)
    marital_status = forms.ChoiceField(choices=MARITAL_STATUS_CHOICES, required=False)
    job = forms.CharField(max_length=150, required=False)
    notes = forms.CharField(max_length=2000, required=False)

    def clean_age(self):
        return validate_age(self.cleaned_data.get('age'))

    def clean_gender(self):
        return self.cleaned_data.get('gender') or UNSPECIFIED

    def clean_marital_status(self):
        return self.cleaned_data.get('marital_status') or UNSPECIFIED


class ApiKeySerializer(forms.Form):
    """Personal Gemini key kept for the current login only."""
    api_key = forms.CharField(
        max_length=255,
        error_messages={'required': 'API anahtarı gerekli.'}
    )
