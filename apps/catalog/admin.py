from django.contrib import admin

from apps.catalog.models import Category, MaintenanceBlock, Product, ProductImage


class ProductImageInline(admin.TabularInline):
    model = ProductImage
    extra = 0


class MaintenanceBlockInline(admin.TabularInline):
    model = MaintenanceBlock
    extra = 0


@admin.register(Category)
class CategoryAdmin(admin.ModelAdmin):
    list_display = ("name", "slug", "parent", "updated_at")
    search_fields = ("name", "slug")


@admin.register(Product)
class ProductAdmin(admin.ModelAdmin):
    list_display = ("name", "sku", "vendor", "category", "stock", "price_per_hour", "price_per_day", "price_per_week", "is_active")
    list_filter = ("is_active", "category")
    search_fields = ("name", "sku", "vendor__username")
    autocomplete_fields = ("vendor", "category")
    inlines = [ProductImageInline, MaintenanceBlockInline]


@admin.register(MaintenanceBlock)
class MaintenanceBlockAdmin(admin.ModelAdmin):
    list_display = ("product", "start", "end", "reason")
    search_fields = ("product__name", "product__sku", "reason")
    autocomplete_fields = ("product",)
