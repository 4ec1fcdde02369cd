from django.contrib import admin

from coursemigration.models import Category, Course, Enrolment


@admin.register(Category)
class CategoryAdmin(admin.ModelAdmin):
    list_display = ("id", "name", "parent", "created_on")
    search_fields = ("name",)


class EnrolmentInline(admin.TabularInline):
    model = Enrolment
    raw_id_fields = ("user",)
    extra = 0


@admin.register(Course)
class CourseAdmin(admin.ModelAdmin):
    list_display = ("id", "shortname", "fullname", "category", "visible")
    list_filter = ("visible", "category")
    search_fields = ("shortname", "fullname")
    inlines = (EnrolmentInline,)
