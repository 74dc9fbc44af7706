from django.urls import path

from . import views

urlpatterns = [
    path('enrolled-clients/', views.enrolled_client_collection, name='enrolled_client_collection'),
    path('enrolled-clients/sales-board/', views.sales_board, name='enrolled_client_sales_board'),
    path('enrolled-clients/admin-board/', views.admin_board, name='enrolled_client_admin_board'),
    path('enrolled-clients/lead/<int:lead_id>/', views.enrolled_client_by_lead, name='enrolled_client_by_lead'),
    path('enrolled-clients/<int:pk>/', views.enrolled_client_detail, name='enrolled_client_detail'),
    path('enrolled-clients/<int:pk>/sales-update', views.sales_update, name='enrolled_client_sales_update'),
    path('enrolled-clients/<int:pk>/admin-approval', views.admin_approval, name='enrolled_client_admin_approval'),
    path('enrolled-clients/<int:pk>/sales-approval', views.sales_approval, name='enrolled_client_sales_approval'),
    path(
        'enrolled-clients/<int:pk>/final-configuration',
        views.final_configuration,
        name='enrolled_client_final_configuration',
    ),
    path(
        'enrolled-clients/<int:pk>/final-configuration/offer-letter',
        views.final_configuration,
        {'scope': 'offer_letter'},
        name='enrolled_client_final_configuration_offer_letter',
    ),
    path(
        'enrolled-clients/<int:pk>/final-configuration/first-year',
        views.final_configuration,
        {'scope': 'first_year'},
        name='enrolled_client_final_configuration_first_year',
    ),
    path('enrolled-clients/<int:pk>/final-approval', views.final_approval, name='enrolled_client_final_approval'),
    path(
        'enrolled-clients/<int:pk>/final-approval/offer-letter',
        views.final_approval,
        {'scope': 'offer_letter'},
        name='enrolled_client_final_approval_offer_letter',
    ),
    path(
        'enrolled-clients/<int:pk>/final-approval/first-year',
        views.final_approval,
        {'scope': 'first_year'},
        name='enrolled_client_final_approval_first_year',
    ),
    path(
        'enrolled-clients/<int:pk>/accept-admin-changes',
        views.accept_admin_changes,
        name='enrolled_client_accept_admin_changes',
    ),
    path(
        'enrolled-clients/<int:pk>/accept-admin-changes/offer-letter',
        views.accept_admin_changes,
        {'scope': 'offer_letter'},
        name='enrolled_client_accept_admin_changes_offer_letter',
    ),
    path(
        'enrolled-clients/<int:pk>/accept-admin-changes/first-year',
        views.accept_admin_changes,
        {'scope': 'first_year'},
        name='enrolled_client_accept_admin_changes_first_year',
    ),
    path('enrolled-clients/<int:pk>/statement.pdf', views.installment_statement_pdf, name='enrolled_client_statement_pdf'),

    path('installments', views.installment_collection, name='installment_collection'),
    path('installments/combined', views.installment_combined, name='installment_combined'),
    path('installments/<int:pk>', views.installment_detail, name='installment_detail'),
    path('installments/<int:pk>/admin-review', views.installment_admin_review, name='installment_admin_review'),
    path('installments/<int:pk>/sales-review', views.installment_sales_review, name='installment_sales_review'),
    path('installments/<int:pk>/payment', views.installment_payment, name='installment_payment'),
]
