from mlt_xml_checker.cli.main import main

if __name__ == "__main__":
    main()
