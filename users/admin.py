from django.contrib import admin
from django.contrib.auth.admin import UserAdmin as BaseUserAdmin
from django.contrib.auth import get_user_model

# Register your models here.

User = get_user_model()


class UserAdmin(BaseUserAdmin):
    fieldsets = (
        (None, {'fields': ('email', 'password')}),
        ('Personal info', {'fields': ('name', 'role', 'roll_number')}),
        ('Class', {'fields': ('department', 'year', 'section')}),
        ('Permissions', {'fields': ('is_active', 'is_staff', 'is_superuser', 'groups', 'user_permissions')}),
        ('Important dates', {'fields': ('last_login', 'date_joined')}),
    )
    add_fieldsets = (
        (None, {
            'classes': ('wide',),
            'fields': ('email', 'name', 'role', 'department', 'year', 'section', 'roll_number', 'password1', 'password2'),
        }),
    )
    ordering = ['email']
    search_fields = ('email', 'name', 'roll_number')
    list_display = ('email', 'name', 'role', 'department', 'year', 'section', 'is_active')
    list_filter = ('role', 'department', 'year', 'section')


admin.site.register(User, UserAdmin)
