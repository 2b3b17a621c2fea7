"""
Forms for django-cms-engine public views.
"""
from django import forms
from django.core.exceptions import ValidationError
from django.core.files.uploadedfile import UploadedFile

from .models import Media


class PostPasswordForm(forms.Form):
    """Unlock a password-protected post."""

    password = forms.CharField(widget=forms.PasswordInput, max_length=255)

    def __init__(self, *args, post=None, **kwargs):
        self.post = post
        super().__init__(*args, **kwargs)

    def clean_password(self):
        password = self.cleaned_data["password"]
        if self.post is None or not self.post.check_password(password):
            raise forms.ValidationError("Incorrect password.")
        return password


class MediaAdminForm(forms.ModelForm):
    """Admin upload form enforcing the upload rules and per-site deduplication."""

    class Meta:
        model = Media
        fields = "__all__"

    def clean_file(self):
        upload = self.cleaned_data.get("file")
        if isinstance(upload, UploadedFile):
            try:
                Media.validate_upload(upload)
            except ValidationError as exc:
                raise forms.ValidationError(exc.messages)
        return upload

    def clean(self):
        cleaned_data = super().clean()
        upload = cleaned_data.get("file")
        site = cleaned_data.get("site")
        if isinstance(upload, UploadedFile) and site is not None:
            self.content_hash = Media.compute_hash(upload)
            duplicate = Media.objects.filter(site=site, content_hash=self.content_hash).exclude(pk=self.instance.pk)
            if duplicate.exists():
                raise forms.ValidationError({"file": "This file is already in the site's media library."})
        return cleaned_data
