from rest_framework.pagination import PageNumberPagination


class NotificationPagination(PageNumberPagination):
    page_size = 30


class FollowRequestPagination(PageNumberPagination):
    page_size = 10
