from django import forms
from django.contrib.auth import get_user_model
from django.contrib.auth.password_validation import validate_password


class UserForm(forms.ModelForm):
    password = forms.CharField(
        widget=forms.PasswordInput,
        required=False,
        help_text='Leave empty to keep the current password.',
    )

    class Meta:
        model = get_user_model()
        fields = ['username', 'first_name', 'last_name', 'role', 'school_class', 'division', 'section', 'is_active']

    def __init__(self, *args, **kwargs):
        super().__init__(*args, **kwargs)
        if not self.instance.pk:
            self.fields['password'].required = True
            self.fields['password'].help_text = ''

    def clean_password(self):
        password = self.cleaned_data.get('password')
        if password:
            validate_password(password, self.instance)
        return password

    def clean(self):
        cleaned_data = super().clean()
        role = cleaned_data.get('role')
        if role == 'teacher':
            if not cleaned_data.get('school_class'):
                self.add_error('school_class', 'Class teachers need a class.')
            if not cleaned_data.get('division'):
                self.add_error('division', 'Class teachers need a division.')
        return cleaned_data

    def save(self, commit=True):
        user = super().save(commit=False)
        password = self.cleaned_data.get('password')
        if password:
            user.set_password(password)
        if commit:
            user.save()
        return user
