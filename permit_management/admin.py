from django.contrib import admin
from .models import PermissionRequest


@admin.register(PermissionRequest)
class PermissionRequestAdmin(admin.ModelAdmin):
    list_display = ('student_name', 'roll_number', 'department', 'year', 'section', 'status', 'requested_date', 'approved_by', 'created_at')
    list_filter = ('status', 'department', 'year', 'section')
    search_fields = ('student_name', 'roll_number', 'student__email', 'reason')
    readonly_fields = ('id', 'created_at', 'updated_at', 'ai_verification')
    exclude = ('letter_image_base64',)
