from django import forms

from .providers import DIFFICULTIES, MAX_QUESTIONS, PROVIDER_CLASSES


class ImageQuizForm(forms.Form):
    image_url = forms.CharField(
        required=False,
        max_length=2000,
        widget=forms.URLInput(attrs={'placeholder': 'Paste an image URL'})
    )
    image_file = forms.FileField(required=False)
    provider = forms.ChoiceField(
        choices=[(cls.name, cls.display_name) for cls in PROVIDER_CLASSES],
        required=False,
    )
    num_questions = forms.IntegerField(
        required=False,
        min_value=1, max_value=MAX_QUESTIONS,
        initial=5,
        help_text="How many questions should the AI generate?"
    )
    difficulty = forms.ChoiceField(
        choices=[(d, d.title()) for d in DIFFICULTIES],
        initial="medium",
        required=False,
    )
    subject = forms.CharField(
        required=False,
        max_length=100,
        widget=forms.TextInput(attrs={'placeholder': 'Optional: subject focus'})
    )

    def clean(self):
        cleaned = super().clean()
        if not cleaned.get("image_url") and not cleaned.get("image_file"):
            raise forms.ValidationError("Enter an image URL or upload an image.")
        return cleaned
