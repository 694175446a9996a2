from admissions_dashboard.main import main

main()
