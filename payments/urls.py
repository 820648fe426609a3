from django.urls import path
from .views import initiate_stk_push, query_payment_status, mpesa_callback

urlpatterns = [
    path('initiate-stk-push/', initiate_stk_push, name='initiate-stk-push'),
    path('query-status/', query_payment_status, name='query-payment-status'),
    path('payment-callback/', mpesa_callback, name='mpesa-callback'),
]
